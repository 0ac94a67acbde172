"""Small helpers: membership test, program directory, worker pool, HTTP session."""

from __future__ import annotations

import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable
from urllib.parse import quote, urlsplit, urlunsplit

import requests

from bestsub import logger
from bestsub.config import get_config

HTTP_TIMEOUT = 30


def contains(items: Iterable[str] | None, item: str) -> bool:
    """Return True if *item* is one of *items*."""
    return item in (items or ())


def executable_dir() -> Path:
    """Directory holding the running program, or '.' if it cannot be found."""
    program = sys.argv[0] if sys.argv else ""
    if not program:
        logger.error("get executable path failed: %s", "program path is unknown")
        return Path(".")
    try:
        return Path(program).resolve().parent
    except OSError as exc:
        logger.error("get executable path failed: %s", exc)
        return Path(".")


@dataclass
class Task:
    """One unit of work submitted to a ThreadPool and its outcome."""

    id: int
    args: Any
    result: Any = None
    error: BaseException | None = None


class ThreadPool:
    """Fixed set of worker threads applying one function to queued arguments."""

    def __init__(self, num_workers: int, task_func: Callable[[Any], Any]):
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        self.num_workers = num_workers
        self.task_func = task_func
        self._tasks: queue.Queue[Task | None] = queue.Queue(maxsize=num_workers * 10)
        self._results: list[Task] = []
        self._lock = threading.Lock()
        self._workers: list[threading.Thread] = []
        self._senders: list[threading.Thread] = []

    def start(self) -> None:
        for _ in range(self.num_workers):
            worker = threading.Thread(target=self._work, daemon=True)
            worker.start()
            self._workers.append(worker)

    def _work(self) -> None:
        while True:
            task = self._tasks.get()
            if task is None:
                return
            try:
                task.result = self.task_func(task.args)
            except Exception as exc:
                task.error = exc
            with self._lock:
                self._results.append(task)

    def _send(self, args_list: list[Any]) -> None:
        for number, args in enumerate(args_list, start=1):
            self._tasks.put(Task(id=number, args=args))

    def add_task_args(self, args_list: Iterable[Any]) -> None:
        """Queue one task per argument, numbered from 1."""
        sender = threading.Thread(target=self._send, args=(list(args_list),), daemon=True)
        sender.start()
        self._senders.append(sender)

    def wait(self) -> None:
        """Block until every queued task is done and the workers have stopped."""
        for sender in self._senders:
            sender.join()
        for _ in self._workers:
            self._tasks.put(None)
        for worker in self._workers:
            worker.join()

    def results(self) -> list[Task]:
        with self._lock:
            return list(self._results)


class _TimeoutSession(requests.Session):
    def __init__(self, timeout: float):
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def _userinfo(username: str, password: str) -> str:
    return f"{quote(username, safe='')}:{quote(password, safe='')}@"


def new_http_session() -> requests.Session:
    """Session with a 30 s default timeout, routed through the configured proxy."""
    settings = get_config().proxy
    session = _TimeoutSession(HTTP_TIMEOUT)
    has_auth = bool(settings.username and settings.password)
    proxy_url = ""
    if settings.type == "http":
        proxy_url = settings.address
        if has_auth:
            try:
                parts = urlsplit(settings.address)
            except ValueError:
                parts = None
            if parts is not None:
                host = parts.netloc.rpartition("@")[2]
                netloc = _userinfo(settings.username, settings.password) + host
                proxy_url = urlunsplit((parts.scheme, netloc, parts.path, "", ""))
    elif settings.type == "socks":
        auth = _userinfo(settings.username, settings.password) if has_auth else ""
        proxy_url = f"socks5h://{auth}{settings.address}"
    if proxy_url:
        session.proxies.update({"http": proxy_url, "https": proxy_url})
    return session
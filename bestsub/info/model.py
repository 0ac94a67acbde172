"""Records of proxies under test and the HTTP sessions that route through them."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from bestsub.config import get_config


class UnsupportedProxyError(ValueError):
    """The proxy description cannot be turned into a usable HTTP route."""


@dataclass
class Unlock:
    """Which services were reachable through a proxy."""

    google: bool = False
    chatgpt: bool = False
    netflix: bool = False
    disney: bool = False
    youtube: bool = False
    cloudflare: bool = False


@dataclass
class ProxyInfo:
    """Results gathered while checking a proxy."""

    unlock: Unlock = field(default_factory=Unlock)
    speed: int = 0
    speed_skip: bool = False
    rate: float = 0.0
    risk: int = 0
    delay: int = 0
    alive: bool = False
    country: str = ""
    flag: str = ""


class _ProxySession(requests.Session):
    def __init__(self, timeout: float | None):
        super().__init__()
        self.timeout = timeout
        self.trust_env = False
        self.headers["Connection"] = "close"

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def _port(raw: dict[str, Any]) -> int:
    port = raw.get("port")
    if isinstance(port, str) and port.isdigit():
        port = int(port)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise UnsupportedProxyError(f"invalid proxy port: {raw.get('port')!r}")
    return port


def _credential(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key) or ""
    if not isinstance(value, str):
        raise UnsupportedProxyError(f"proxy {key} must be a string")
    return value


def _proxy_url(raw: dict[str, Any]) -> str:
    kind = raw.get("type")
    server = raw.get("server")
    if not isinstance(server, str) or not server:
        raise UnsupportedProxyError("proxy server is missing")
    port = _port(raw)
    tls = raw.get("tls") is True

    if kind == "http":
        scheme = "https" if tls else "http"
    elif kind == "socks5":
        if tls:
            raise UnsupportedProxyError("socks5 over tls is not supported")
        scheme = "socks5h"
    else:
        raise UnsupportedProxyError(f"unsupported proxy type: {kind!r}")

    username = _credential(raw, "username")
    secret = _credential(raw, "password")
    auth = f"{quote(username, safe='')}:{quote(secret, safe='')}@" if username else ""
    host = f"[{server}]" if ":" in server else server
    return f"{scheme}://{auth}{host}:{port}"


def build_session(raw: dict[str, Any]) -> requests.Session:
    """Session whose requests go through the proxy described by *raw*.

    The timeout comes from check.timeout in milliseconds; zero means none.
    """
    url = _proxy_url(raw)
    timeout_ms = get_config().check.timeout
    session = _ProxySession(timeout_ms / 1000 if timeout_ms > 0 else None)
    session.proxies.update({"http": url, "https": url})
    return session


@dataclass(eq=False)
class Proxy:
    """One proxy: its raw description, check results and live session."""

    raw: dict[str, Any]
    id: int = 0
    info: ProxyInfo = field(default_factory=ProxyInfo)
    session: requests.Session | None = field(default=None, repr=False)
    cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    def open(self) -> None:
        """Create a fresh session routed through this proxy."""
        self.cancelled = threading.Event()
        self.session = build_session(self.raw)

    def close(self) -> None:
        """Cancel pending work and release the session's connections."""
        self.cancelled.set()
        if self.session is not None:
            self.session.close()

    def __enter__(self) -> Proxy:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
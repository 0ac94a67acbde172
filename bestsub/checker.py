"""Checks run through a proxy: liveness, service unlocks and download speed."""

from __future__ import annotations

import threading
import time

import regex
import requests

from bestsub import logger
from bestsub.config import get_config
from bestsub.info.model import Proxy

_CHUNK_SIZE = 32 * 1024

_UA_91 = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
_UA_120 = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
_UA_131 = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

_CLOUDFLARE_HEADERS = {
    "User-Agent": _UA_91,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Connection": "close",
}

_YOUTUBE_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
    "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7",
    "accept-language": "zh-CN,zh;q=0.9",
    "sec-ch-ua": '"Chromium";v="131", "Not_A Brand";v="24", "Google Chrome";v="131"',
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "user-agent": _UA_131,
}

_OPENAI_BLOCKED = "Request is not allowed. Please try again later."


class Checker:
    """Runs checks through one opened proxy and records results on it."""

    def __init__(self, proxy: Proxy):
        self.proxy = proxy

    def __enter__(self) -> Checker:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self.proxy is not None:
            self.proxy.close()

    @property
    def _session(self) -> requests.Session:
        if self.proxy.session is None:
            raise RuntimeError("proxy session is not open")
        return self.proxy.session

    def _name(self) -> str:
        name = self.proxy.raw.get("name", "")
        return name if isinstance(name, str) else str(name)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response | None:
        session = self._session
        if self.proxy.cancelled.is_set():
            return None
        try:
            return session.request(method, url, **kwargs)
        except requests.RequestException:
            return None

    def alive_test(self, url: str, expected_status: int) -> None:
        """Mark the proxy alive with its delay if HEAD *url* gives the expected status."""
        start = time.monotonic()
        response = self._request("HEAD", url, allow_redirects=True)
        if response is None:
            return
        with response:
            if response.status_code == expected_status:
                self.proxy.info.alive = True
                self.proxy.info.delay = int((time.monotonic() - start) * 1000) & 0xFFFF

    def cloudflare_test(self) -> None:
        response = self._request("GET", "https://www.cloudflare.com", headers=_CLOUDFLARE_HEADERS)
        if response is None:
            return
        with response:
            if response.status_code == 200:
                self.proxy.info.alive = True

    def google_test(self) -> None:
        response = self._request("GET", "http://www.google.com/generate_204")
        if response is None:
            return
        with response:
            if response.status_code == 204:
                self.proxy.info.unlock.google = True

    def netflix_test(self) -> None:
        response = self._request(
            "GET", "https://www.netflix.com/title/81280792", headers={"User-Agent": _UA_91}
        )
        if response is None:
            return
        with response:
            if response.status_code == 200:
                self.proxy.info.unlock.netflix = True

    def openai_test(self) -> None:
        response = self._request(
            "GET", "https://ios.chat.openai.com", headers={"User-Agent": _UA_120}
        )
        if response is None:
            return
        with response:
            if response.status_code == 403 and _OPENAI_BLOCKED in response.text:
                self.proxy.info.unlock.chatgpt = True

    def youtube_test(self) -> None:
        response = self._request(
            "GET", "https://www.youtube.com/premium", headers=_YOUTUBE_HEADERS
        )
        if response is None:
            return
        with response:
            body = response.content
        index = body.find(b'"countryCode"')
        if index != -1:
            region = body[index : index + 17].replace(b'"countryCode":"', b"", 1)
            if region:
                self.proxy.info.unlock.youtube = True

    @staticmethod
    def _download(response: requests.Response, limit: int, timeout: int) -> tuple[int, bool]:
        """Read up to *limit* bytes within *timeout* seconds; (bytes, timed out)."""
        total = 0
        done = threading.Event()

        def read() -> None:
            nonlocal total
            remaining = limit
            try:
                for chunk in response.iter_content(_CHUNK_SIZE):
                    take = min(len(chunk), remaining)
                    total += take
                    remaining -= take
                    if remaining <= 0:
                        break
            except Exception:  # the stream may be closed while reading
                pass
            finally:
                done.set()

        if limit > 0:
            threading.Thread(target=read, daemon=True).start()
        else:
            done.set()
        finished = done.wait(max(timeout, 0))
        read_bytes = total
        response.close()
        return read_bytes, not finished

    def check_speed(self) -> None:
        """Measure download speed in KB/s from the first speed-test URL that delivers data."""
        settings = get_config().check
        name = self._name()
        if settings.speed_skip_name and regex.search(settings.speed_skip_name, name):
            self.proxy.info.speed_skip = True
            logger.debug("check speed skip : %s", name)
            return

        session = self._session
        limit = settings.download_size * 1024 * 1024
        request_timeout = settings.timeout if settings.timeout > 0 else None

        for url in settings.speed_test_url:
            if self.proxy.cancelled.is_set():
                return
            try:
                response = session.get(url, stream=True, timeout=request_timeout)
            except requests.RequestException:
                continue
            started = time.monotonic()
            total, timed_out = self._download(response, limit, settings.download_timeout)
            if total > 0:
                duration = int((time.monotonic() - started) * 1000) or 1
                self.proxy.info.speed = int(total / 1024 * 1000 / duration)
                if timed_out:
                    logger.debug(
                        "Speed test for %s timed out but partial speed calculated: %s KB/s",
                        name,
                        self.proxy.info.speed,
                    )
                break
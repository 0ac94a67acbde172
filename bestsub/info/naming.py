"""Country detection, flags and rate multipliers derived from a proxy's name or exit IP."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import regex
import requests
import yaml

from bestsub import logger
from bestsub.info.model import Proxy

UNKNOWN_COUNTRY = "UN"
_FLAG_BASE = 127397
_ATTEMPTS = 5

_GEOIP_APIS = (
    ("https://api.ip.sb/geoip", "country_code"),
    ("https://ipapi.co/json", "country_code"),
    ("https://ip.seeip.org/geoip", "country_code"),
    ("https://api.myip.com", "cc"),
)

_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
    "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Sec-Ch-Ua": '"Not A(Brand";v="8", "Chromium";v="132", "Google Chrome";v="132"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": "Windows",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

_RATE_RE = regex.compile(r"(?:倍率|x(?<value>\d+(?:\.\d+)?))")


@dataclass(frozen=True)
class Country:
    """A country code and the pattern that recognises it in proxy names."""

    name: str
    recognition: str


def _session(proxy: Proxy) -> requests.Session:
    if proxy.session is None:
        raise RuntimeError("proxy session is not open")
    return proxy.session


def _proxy_name(proxy: Proxy) -> str:
    name = proxy.raw.get("name", "")
    return name if isinstance(name, str) else str(name)


def _lookup(proxy: Proxy, session: requests.Session, url: str, key: str) -> str | None:
    """Ask one geo-IP service; raises on transport or decoding failure."""
    if proxy.cancelled.is_set():
        raise requests.ConnectionError("proxy was closed")
    response = session.get(url, headers=_HEADERS)
    with response:
        payload: Any = json.loads(response.content)
    if not isinstance(payload, dict):
        return None
    code = payload.get(key)
    return code if isinstance(code, str) else None


def country_code_from_api(proxy: Proxy) -> None:
    """Set the proxy's country from geo-IP services queried through it."""
    session = _session(proxy)
    country_code = ""
    for url, key in _GEOIP_APIS:
        for attempt in range(_ATTEMPTS):
            try:
                code = _lookup(proxy, session, url, key)
            except (requests.RequestException, ValueError):
                time.sleep(attempt)
                continue
            if code is None:
                continue
            country_code = code
            if code:
                break
    proxy.info.country = country_code or UNKNOWN_COUNTRY


def get_flag(country_code: str) -> str:
    """Regional-indicator flag for a two-letter country code."""
    code = country_code.upper()
    if len(code) < 2:
        raise ValueError(f"country code too short: {country_code!r}")
    return chr(ord(code[0]) + _FLAG_BASE) + chr(ord(code[1]) + _FLAG_BASE)


def country_flag(proxy: Proxy) -> None:
    """Set the proxy's flag from its country code."""
    proxy.info.flag = get_flag(proxy.info.country)


def _scalar(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"rename rule {key} must be a scalar")


def load_country_rules(path: str | Path) -> list[Country]:
    """Read the rename rules file: a YAML list of name/recognition pairs."""
    text = Path(path).read_bytes()
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"parse rename file failed: {exc}") from exc
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("rename file must hold a list of rules")
    rules = []
    for entry in data:
        if entry is None:
            rules.append(Country("", ""))
            continue
        if not isinstance(entry, dict):
            raise ValueError("each rename rule must be a mapping")
        rules.append(
            Country(
                _scalar("name", entry.get("name")),
                _scalar("recognition", entry.get("recognition")),
            )
        )
    return rules


@lru_cache(maxsize=None)
def _compile(pattern: str) -> Any:
    return regex.compile(pattern)


def country_code_regex(proxy: Proxy, rules: list[Country]) -> None:
    """Set the country of the first rule whose pattern matches the name."""
    name = _proxy_name(proxy)
    for country in rules:
        if _compile(country.recognition).search(name):
            proxy.info.country = country.name
            return
    proxy.info.country = UNKNOWN_COUNTRY


def parse_rate(proxy: Proxy) -> None:
    """Set the proxy's rate multiplier from an 'x<number>' in its name."""
    name = _proxy_name(proxy)
    match = _RATE_RE.search(name)
    if match is None:
        return
    value = match.group("value")
    if value is None:
        logger.debug("Rate value not found")
        return
    try:
        rate = float(value)
    except ValueError as exc:
        logger.debug("parse rate value failed: %s", exc)
        return
    proxy.info.rate = rate
    logger.debug("parse proxy %s rate value: %s", name, rate)
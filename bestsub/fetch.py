"""Downloading subscriptions and turning their content into proxies."""

from __future__ import annotations

import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import regex
import requests
import yaml

from bestsub import logger
from bestsub.config import get_config
from bestsub.info.model import Proxy, UnsupportedProxyError, build_session
from bestsub.parser.b64 import decode_base64
from bestsub.parser.links import parse_proxy
from bestsub.utils import new_http_session

USER_AGENT = "clash.meta"
RETRY_DELAY = 1.0

_LINK_RE = re.compile(
    r"^(ssr://|ss://|vmess://|trojan://|vless://|hysteria://|hy2://|hysteria2://)"
)
_UNWANTED = regex.compile(r"[^\x20-\x7e\n\t\r\p{Han}]")
_SPACE = " \t\n\r\v\f"

_BOOL_TAG = "tag:yaml.org,2002:bool"
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _Loader(yaml.SafeLoader):
    """Safe loader that reads only true/false as booleans and keeps dates as text."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag not in (_BOOL_TAG, _TIMESTAMP_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def remove_control_characters(data: bytes) -> bytes:
    """Keep printable ASCII, tab, CR, LF and Han characters; drop everything else."""
    text = data.decode("utf-8", errors="ignore")
    return _UNWANTED.sub("", text).encode("utf-8")


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def is_yaml(data: bytes, sub_url: str) -> bool:
    """True if the subscription content is a YAML document with a proxies section."""
    if _LINK_RE.match(decode_base64(_text(data))):
        logger.debug("subscription link: %s is a v2ray subscription link", logger.mask_url(sub_url))
        return False
    if b"proxies:" in data:
        logger.debug("subscription link: %s is a yaml file", logger.mask_url(sub_url))
        return True
    return False


def _type_allowed(raw: dict[str, Any], include: list[str]) -> bool:
    if not include:
        return True
    kind = raw.get("type")
    return isinstance(kind, str) and kind in include


def _scan_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _load_entry(chunk: str) -> dict[str, Any] | None:
    try:
        document = yaml.load(chunk, Loader=_Loader)
    except yaml.YAMLError:
        return None
    if not isinstance(document, list) or not document:
        return None
    if not all(item is None or isinstance(item, dict) for item in document):
        return None
    first = document[0]
    if not isinstance(first, dict):
        return None
    return {str(key): value for key, value in first.items()}


def parse_yaml_proxies(data: bytes) -> list[dict[str, Any]]:
    """Extract the entries of the top-level proxies list, one entry at a time."""
    text = remove_control_characters(data).decode("utf-8")
    include = get_config().type_include
    found: list[dict[str, Any]] = []
    chunk: list[str] = []

    def flush() -> None:
        entry = _load_entry("".join(chunk))
        if entry is not None and _type_allowed(entry, include):
            found.append(entry)
        chunk.clear()

    in_section = False
    indent = 0
    first = True
    for line in _scan_lines(text):
        trimmed = line.strip(_SPACE)
        if trimmed == "proxies:":
            in_section = True
            continue
        if not in_section:
            continue
        lead = len(line) - len(trimmed)
        if first:
            indent = lead
            first = False
        if lead == 0 and not trimmed.startswith("-") and trimmed:
            break
        if not trimmed or trimmed.startswith("#"):
            continue
        if trimmed.startswith("-") and lead == indent:
            if chunk:
                flush()
            chunk.append(line + "\n")
        elif chunk:
            chunk.append(line + "\n")

    if chunk:
        flush()
    return found


def parse_subscription(data: bytes, sub_url: str) -> list[dict[str, Any]]:
    """Proxy descriptions from a subscription: YAML, share links or base64 of links."""
    if is_yaml(data, sub_url):
        return parse_yaml_proxies(data)

    text = _text(data)
    if not _LINK_RE.match(text):
        logger.debug(
            "subscription link: %s is not a v2ray subscription link, "
            "attempting to decode the subscription link using base64",
            logger.mask_url(sub_url),
        )
        text = decode_base64(text)
    if not _LINK_RE.match(text):
        return []

    include = get_config().type_include
    found: list[dict[str, Any]] = []
    for line in text.split("\n"):
        try:
            raw = parse_proxy(line)
        except ValueError:
            continue
        if raw is not None and _type_allowed(raw, include):
            found.append(raw)
    return found


def fetch_subscription(url: str) -> bytes:
    """Download a subscription, retrying as configured; raises ConnectionError."""
    retries = get_config().sub_urls_retry
    last_error: Exception | None = None
    with new_http_session() as session:
        for attempt in range(retries):
            if attempt:
                time.sleep(RETRY_DELAY)
            try:
                response = session.get(
                    url, headers={"User-Agent": USER_AGENT, "Connection": "close"}
                )
                with response:
                    if response.status_code != 200:
                        last_error = ConnectionError(
                            f"subscription link: {url} returned status code: "
                            f"{response.status_code}"
                        )
                        continue
                    return response.content
            except requests.RequestException as exc:
                last_error = exc
    reason = "<nil>" if last_error is None else str(last_error)
    raise ConnectionError(f"failed after {retries} retries: {reason}")


def _task(url: str) -> list[dict[str, Any]]:
    try:
        data = fetch_subscription(url)
    except OSError as exc:
        logger.warn("subscription link: %s get data failed: %s", logger.mask_url(url), exc)
        return []
    return parse_subscription(data, url)


def get_proxies() -> list[Proxy]:
    """Download and parse every configured subscription concurrently."""
    settings = get_config()
    urls = settings.sub_urls or []
    logger.info("subscription links count: %s", len(urls))
    if not urls:
        return []
    workers = max(1, min(len(urls), settings.check.concurrent))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        batches = list(pool.map(_task, urls))
    return [Proxy(raw=raw) for batch in batches for raw in batch]


def new_proxy(raw: dict[str, Any]) -> Proxy | None:
    """A proxy with an open session, or None if *raw* cannot be routed."""
    try:
        session = build_session(raw)
    except UnsupportedProxyError:
        return None
    return Proxy(raw=raw, session=session)
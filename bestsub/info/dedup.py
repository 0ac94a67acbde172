"""Removal of proxies that resolve to the same address and port."""

from __future__ import annotations

import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from bestsub.info.model import Proxy


def _resolve(host: str) -> str | None:
    try:
        infos = socket.getaddrinfo(host, None)
    except (OSError, UnicodeError):
        return None
    if not infos:
        return None
    return infos[0][4][0]


def dedup_key(raw: dict[str, Any]) -> str | None:
    """'ip:port' identifying the proxy's endpoint, or None if it cannot be resolved."""
    if raw.get("type") in ("vless", "vmess"):
        server = raw.get("servername")
        if not isinstance(server, str) or not server:
            server = raw.get("server")
    else:
        server = raw.get("server")
    port = raw.get("port")
    if not isinstance(server, str) or isinstance(port, bool) or not isinstance(port, int):
        return None
    if not server:
        return None
    address = _resolve(server)
    if address is None:
        return None
    return f"{address}:{port}"


def deduplicate_proxies(proxies: list[Proxy], concurrent: int) -> list[Proxy]:
    """Fresh proxies, one per resolved endpoint; unresolvable ones are dropped."""
    raws = [proxy.raw for proxy in proxies]
    if not raws:
        return []
    workers = concurrent if concurrent > 0 else None
    with ThreadPoolExecutor(max_workers=workers) as pool:
        keys = list(pool.map(dedup_key, raws))
    unique: dict[str, dict[str, Any]] = {}
    for raw, key in zip(raws, keys):
        if key is not None:
            unique.setdefault(key, raw)
    return [Proxy(raw=raw) for raw in unique.values()]
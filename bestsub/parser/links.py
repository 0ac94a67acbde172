"""Parsing of share links (ss, ssr, vmess, vless, trojan, hysteria2) into proxy mappings."""

from __future__ import annotations

import base64
import binascii
import json
import re
import string
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable
from urllib.parse import quote

from bestsub.parser.b64 import decode_base64


class ParseError(ValueError):
    """A share link is malformed."""


_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")
_HEX = frozenset(b"0123456789abcdefABCDEF")
_ALNUM = string.ascii_letters + string.digits
_USERINFO_OK = frozenset(_ALNUM + "-._:~!$&'()*+,;=%@")
_HOST_OK = frozenset(_ALNUM + "-_.~!$&'()*+,;=:[]<>\"")
_COLON = ":"


def _atoi(text: str) -> int:
    """Strict decimal integer: optional sign and ASCII digits only."""
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    value = int(text)
    if not -_INT64_MAX - 1 <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range {text!r}")
    return value


def _unescape(text: str, *, plus_space: bool = False) -> str:
    """Decode percent escapes, failing on malformed ones."""
    if "%" not in text and not (plus_space and "+" in text):
        return text
    data = text.encode("utf-8")
    out = bytearray()
    pos = 0
    while pos < len(data):
        byte = data[pos]
        if byte == 0x25:
            digits = data[pos + 1 : pos + 3]
            if len(digits) < 2 or not all(d in _HEX for d in digits):
                bad = data[pos : pos + 3].decode("utf-8", errors="replace")
                raise ValueError(f"invalid URL escape {bad!r}")
            out.append(int(digits, 16))
            pos += 3
        else:
            out.append(0x20 if plus_space and byte == 0x2B else byte)
            pos += 1
    return out.decode("utf-8", errors="replace")


def _escape_userinfo(text: str) -> str:
    return quote(text, safe="$&+,;=")


def _valid_optional_port(text: str) -> bool:
    if not text:
        return True
    if text[0] != ":":
        return False
    return all(c in string.digits for c in text[1:])


def _parse_query(raw: str) -> tuple[dict[str, list[str]], str | None]:
    values: dict[str, list[str]] = {}
    problem: str | None = None
    for piece in raw.split("&"):
        if ";" in piece:
            problem = problem or "invalid semicolon separator in query"
            continue
        if not piece:
            continue
        key, _, value = piece.partition("=")
        try:
            key = _unescape(key, plus_space=True)
            value = _unescape(value, plus_space=True)
        except ValueError as exc:
            problem = problem or str(exc)
            continue
        values.setdefault(key, []).append(value)
    return values, problem


@dataclass
class _URL:
    scheme: str
    username: str | None
    password: str | None
    host: str
    raw_query: str
    fragment: str

    @property
    def userinfo(self) -> str:
        if self.username is None:
            return ""
        text = _escape_userinfo(self.username)
        if self.password is not None:
            text += _COLON + _escape_userinfo(self.password)
        return text

    def _split_host_port(self) -> tuple[str, str]:
        host, port = self.host, ""
        colon = host.rfind(":")
        if colon != -1 and _valid_optional_port(host[colon:]):
            host, port = host[:colon], host[colon + 1 :]
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        return host, port

    @property
    def hostname(self) -> str:
        return self._split_host_port()[0]

    @property
    def port(self) -> str:
        return self._split_host_port()[1]

    @cached_property
    def query(self) -> dict[str, list[str]]:
        return _parse_query(self.raw_query)[0]

    def get(self, key: str) -> str:
        found = self.query.get(key)
        return found[0] if found else ""


def _split_scheme(raw: str) -> tuple[str, str]:
    for pos, char in enumerate(raw):
        if char.isascii() and char.isalpha():
            continue
        if char.isascii() and (char.isdigit() or char in "+-."):
            if pos == 0:
                return "", raw
            continue
        if char == ":":
            if pos == 0:
                raise ParseError("missing protocol scheme")
            return raw[:pos].lower(), raw[pos + 1 :]
        return "", raw
    return "", raw


def _parse_host(hostport: str) -> str:
    if hostport.startswith("["):
        close = hostport.rfind("]")
        if close == -1:
            raise ParseError("missing ']' in host")
        if not _valid_optional_port(hostport[close + 1 :]):
            raise ParseError(f"invalid port {hostport[close + 1:]!r} after host")
    else:
        colon = hostport.rfind(":")
        if colon != -1 and not _valid_optional_port(hostport[colon:]):
            raise ParseError(f"invalid port {hostport[colon:]!r} after host")
    if any(c.isascii() and c != "%" and c not in _HOST_OK for c in hostport):
        raise ParseError(f"invalid character in host name {hostport!r}")
    try:
        return _unescape(hostport)
    except ValueError as exc:
        raise ParseError(str(exc)) from exc


def _parse_url(raw: str) -> _URL:
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in raw):
        raise ParseError("invalid control character in URL")
    rest, _, raw_fragment = raw.partition("#")
    scheme, rest = _split_scheme(rest)
    if rest.endswith("?") and rest.count("?") == 1:
        rest, raw_query = rest[:-1], ""
    else:
        rest, _, raw_query = rest.partition("?")

    username: str | None = None
    user_key: str | None = None
    host = ""
    if rest.startswith("//") and (scheme or not rest.startswith("///")):
        authority = rest[2:].partition("/")[0]
        userinfo, at, hostport = authority.rpartition("@")
        if at:
            if not all(c in _USERINFO_OK for c in userinfo):
                raise ParseError("invalid userinfo")
            name, colon, tail = userinfo.partition(_COLON)
            try:
                username = _unescape(name)
                user_key = _unescape(tail) if colon else None
            except ValueError as exc:
                raise ParseError(str(exc)) from exc
        host = _parse_host(hostport)
    elif not scheme and ":" in rest.partition("/")[0]:
        raise ParseError("first path segment in URL cannot contain colon")

    try:
        fragment = _unescape(raw_fragment)
    except ValueError as exc:
        raise ParseError(str(exc)) from exc
    return _URL(scheme, username, user_key, host, raw_query, fragment)


def parse_hysteria2(data: str) -> dict[str, Any]:
    """Parse a hysteria2:// or hy2:// link."""
    if not data.startswith(("hysteria2://", "hy2://")):
        raise ParseError("not hysteria2 format")
    link = _parse_url(data)
    server = link.hostname
    if not server:
        raise ParseError("hysteria2 server address error")
    port_text = link.port
    if not port_text:
        raise ParseError("hysteria2 port error")
    try:
        port = _atoi(port_text)
    except ValueError as exc:
        raise ParseError("hysteria2 port error") from exc
    insecure = link.get("insecure")
    return {
        "type": "hysteria2",
        "name": link.fragment,
        "server": server,
        "port": port,
        "ports": link.get("mport"),
        "password": link.userinfo,
        "obfs": link.get("obfs"),
        "obfs-password": link.get("obfs-password"),
        "sni": link.get("sni"),
        "skip-cert-verify": insecure == "1",
        "insecure": insecure,
        "mport": link.get("mport"),
    }


def parse_shadowsocks(data: str) -> dict[str, Any]:
    """Parse an ss:// link in either the SIP002 or the fully encoded form."""
    if not data.startswith("ss://"):
        raise ParseError("not ss format")
    data = data[5:]

    if "@" not in data:
        if "#" in data:
            encoded, _, rest = data.partition("#")
            data = decode_base64(encoded) + "#" + rest
        else:
            data = decode_base64(data)
    if "@" not in data and "#" not in data:
        raise ParseError("format error: missing @ or # separator")

    name = ""
    if "#" in data:
        data, _, fragment = data.rpartition("#")
        try:
            name = _unescape(fragment, plus_space=True)
        except ValueError:
            name = ""

    credentials, at, address = data.partition("@")
    if not at:
        raise ParseError("format error: missing @ separator")

    method, colon, tail = decode_base64(credentials).partition(_COLON)
    if not colon:
        raise ParseError("format error: incorrect encryption method and password format")
    user_key = decode_base64(tail)

    host_port = address.split(":")
    if len(host_port) != 2:
        raise ParseError("format error: incorrect server address format")
    try:
        port = _atoi(host_port[1])
    except ValueError as exc:
        raise ParseError("format error: incorrect port format") from exc

    return {
        "name": name,
        "type": "ss",
        "server": host_port[0],
        "port": port,
        "cipher": method,
        "password": user_key,
    }


def parse_ssr(data: str) -> dict[str, Any]:
    """Parse an ssr:// link."""
    if not data.startswith("ssr://"):
        raise ParseError("not ssr format")
    data = decode_base64(data[len("ssr://") :])
    server_info, has_params, raw_params = data.partition("/?")
    parts = server_info.split(":")
    if len(parts) < 6:
        raise ParseError("ssr parameter error")
    server, port_text, protocol, method, obfs = parts[:5]
    user_key = decode_base64(parts[5])
    try:
        port = _atoi(port_text)
    except ValueError as exc:
        raise ParseError("ssr port error") from exc

    obfs_param = proto_param = remarks = ""
    if has_params:
        params, problem = _parse_query(raw_params)
        if problem is not None:
            raise ParseError("ssr parameter error")

        def param(key: str) -> str:
            found = params.get(key)
            return found[0] if found else ""

        if param("obfsparam"):
            obfs_param = decode_base64(param("obfsparam"))
        if param("protoparam"):
            proto_param = decode_base64(param("protoparam"))
        if param("remarks"):
            remarks = decode_base64(param("remarks"))
        else:
            remarks = f"{server}:{port}"

    return {
        "name": remarks,
        "server": server,
        "port": port,
        "password": user_key,
        "cipher": method,
        "obfs": obfs,
        "obfs-param": obfs_param,
        "protocol": protocol,
        "protocol-param": proto_param,
    }


def parse_trojan(data: str) -> dict[str, Any] | None:
    """Parse a trojan:// link; None when the address has no single port."""
    if not data.startswith("trojan://"):
        raise ParseError("not trojan format")
    link = _parse_url(data)
    host_port = link.host.split(":")
    if len(host_port) != 2:
        return None
    try:
        port = _atoi(host_port[1])
    except ValueError as exc:
        raise ParseError("format error: incorrect port format") from exc

    network = link.get("type")
    allow_insecure = link.get("allowInsecure")
    proxy: dict[str, Any] = {
        "name": link.fragment,
        "type": "trojan",
        "server": host_port[0],
        "port": port,
        "password": link.userinfo,
        "network": network or "original",
        "skip-cert-verify": allow_insecure == "1",
        "allowInsecure": allow_insecure,
    }

    if link.get("security") == "tls":
        proxy["tls"] = True
        if sni := link.get("sni"):
            proxy["sni"] = sni

    if network == "ws":
        ws_opts: dict[str, Any] = {"path": link.get("path")}
        if host := link.get("host"):
            ws_opts["headers"] = {"Host": host}
        proxy["ws-opts"] = ws_opts
    elif network == "grpc":
        if service_name := link.get("serviceName"):
            proxy["grpc-opts"] = {"serviceName": service_name}

    return proxy


def parse_vless(data: str) -> dict[str, Any] | None:
    """Parse a vless:// link; None when the address has no single port."""
    try:
        link = _parse_url(data)
    except ParseError as exc:
        raise ParseError(f"parse failed: {exc}") from exc
    if link.scheme != "vless":
        raise ParseError("not vless format")
    if len(link.host.split(":")) != 2:
        return None
    try:
        port = _atoi(link.port)
    except ValueError as exc:
        raise ParseError("format error: incorrect port format") from exc

    get = link.get
    return {
        "name": link.fragment,
        "type": "vless",
        "server": link.hostname,
        "port": port,
        "uuid": link.userinfo,
        "network": get("type"),
        "tls": get("security") != "none",
        "udp": get("udp") == "true",
        "servername": get("sni"),
        "flow": get("flow"),
        "client-fingerprint": get("fp"),
        "ws-opts": {"path": get("path"), "headers": {"Host": get("host")}},
        "reality-opts": {"public-key": get("pbk"), "short-id": get("sid")},
        "grpc-opts": {"grpc-service-name": get("serviceName")},
        "security": get("security"),
        "sni": get("sni"),
        "fp": get("fp"),
        "pbk": get("pbk"),
        "sid": get("sid"),
        "path": get("path"),
        "host": get("host"),
        "serviceName": get("serviceName"),
        "mode": get("mode"),
    }


_VMESS_FIELDS = ("v", "ps", "add", "port", "id", "aid", "scy", "net", "type",
                 "host", "path", "tls", "sni", "alpn", "fp")
_VMESS_ANY = frozenset({"port", "aid"})


class _Pairs(list):
    """Key/value pairs of a JSON object, in document order."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _vmess_fields(document: Any) -> dict[str, Any]:
    if document is None:
        return {}
    if not isinstance(document, _Pairs):
        raise ParseError("vmess payload is not a JSON object")
    values: dict[str, Any] = {}
    for key, value in document:
        name = key if key in _VMESS_FIELDS else key.lower()
        if name not in _VMESS_FIELDS:
            continue
        if name in _VMESS_ANY:
            values[name] = value
        elif value is None:
            continue
        elif isinstance(value, str):
            values[name] = value
        else:
            raise ParseError(f"vmess field {key!r} must be a string")
    return values


def _number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_vmess(data: str) -> dict[str, Any]:
    """Parse a vmess:// link carrying base64 encoded JSON."""
    if not data.startswith("vmess://"):
        raise ParseError("not vmess format")
    payload = data[8:].replace("\r", "").replace("\n", "")
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"illegal base64 data: {exc}") from exc
    try:
        document = json.loads(
            decoded.decode("utf-8", errors="replace"),
            object_pairs_hook=_Pairs,
            parse_constant=_reject_constant,
        )
    except ValueError as exc:
        raise ParseError(f"invalid vmess json: {exc}") from exc
    info = _vmess_fields(document)

    raw_port = info.get("port")
    if _number(raw_port):
        port = int(raw_port)
    elif isinstance(raw_port, str):
        try:
            port = _atoi(raw_port)
        except ValueError as exc:
            raise ParseError("format error: incorrect port format") from exc
    else:
        raise ParseError("format error: incorrect port format")

    raw_aid = info.get("aid")
    if _number(raw_aid):
        aid = int(raw_aid)
    elif isinstance(raw_aid, str):
        try:
            aid = _atoi(raw_aid)
        except ValueError as exc:
            raise ParseError("format error: alterId format error") from exc
    else:
        aid = 0

    network = info.get("net", "")
    proxy: dict[str, Any] = {
        "name": info.get("ps", ""),
        "type": "vmess",
        "server": info.get("add", ""),
        "port": port,
        "uuid": info.get("id", ""),
        "alterId": aid,
        "cipher": "auto",
        "network": network,
        "tls": info.get("tls", "") == "tls",
        "servername": info.get("sni", ""),
    }

    if network == "ws":
        ws_opts: dict[str, Any] = {"path": info.get("path", "")}
        if info.get("host"):
            ws_opts["headers"] = {"Host": info["host"]}
        proxy["ws-opts"] = ws_opts
    elif network == "grpc":
        proxy["grpc-opts"] = {"serviceName": info.get("path", "")}

    if info.get("alpn"):
        proxy["alpn"] = info["alpn"].split(",")

    return proxy


_PARSERS: tuple[tuple[str, Callable[[str], dict[str, Any] | None]], ...] = (
    ("ss://", parse_shadowsocks),
    ("trojan://", parse_trojan),
    ("vmess://", parse_vmess),
    ("vless://", parse_vless),
    ("hysteria2://", parse_hysteria2),
    ("hy2://", parse_hysteria2),
    ("ssr://", parse_ssr),
)


def parse_proxy(link: str) -> dict[str, Any] | None:
    """Parse any supported share link; None for unknown schemes."""
    for prefix, parser in _PARSERS:
        if link.startswith(prefix):
            return parser(link)
    return None
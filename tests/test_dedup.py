from bestsub.info.dedup import dedup_key, deduplicate_proxies
from bestsub.info.model import Proxy


def test_key_from_server_and_port():
    assert dedup_key({"type": "ss", "server": "127.0.0.1", "port": 443}) == "127.0.0.1:443"


def test_vless_prefers_servername():
    raw = {"type": "vless", "servername": "127.0.0.2", "server": "127.0.0.1", "port": 8}
    assert dedup_key(raw) == "127.0.0.2:8"


def test_vmess_empty_servername_uses_server():
    raw = {"type": "vmess", "servername": "", "server": "127.0.0.1", "port": 8}
    assert dedup_key(raw) == "127.0.0.1:8"


def test_other_types_ignore_servername():
    raw = {"type": "trojan", "servername": "127.0.0.2", "server": "127.0.0.1", "port": 8}
    assert dedup_key(raw) == "127.0.0.1:8"


def test_missing_port_gives_none():
    assert dedup_key({"type": "ss", "server": "127.0.0.1"}) is None


def test_string_port_gives_none():
    assert dedup_key({"type": "ss", "server": "127.0.0.1", "port": "443"}) is None


def test_empty_server_gives_none():
    assert dedup_key({"type": "ss", "server": "", "port": 443}) is None


def test_deduplicate_keeps_first_of_each_endpoint():
    first = {"type": "ss", "server": "127.0.0.1", "port": 443, "name": "a"}
    second = {"type": "ss", "server": "127.0.0.1", "port": 443, "name": "b"}
    third = {"type": "ss", "server": "127.0.0.1", "port": 80, "name": "c"}
    result = deduplicate_proxies([Proxy(raw=r) for r in (first, second, third)], 2)
    assert [p.raw["name"] for p in result] == ["a", "c"]
    assert result[0].raw is first


def test_deduplicate_drops_unresolvable():
    good = {"type": "ss", "server": "127.0.0.1", "port": 443}
    bad = {"type": "ss", "port": 443}
    result = deduplicate_proxies([Proxy(raw=bad), Proxy(raw=good)], 4)
    assert len(result) == 1
    assert result[0].raw is good


def test_deduplicate_empty():
    assert deduplicate_proxies([], 3) == []


def test_deduplicate_returns_fresh_records():
    original = Proxy(raw={"type": "ss", "server": "127.0.0.1", "port": 1})
    original.info.alive = True
    result = deduplicate_proxies([original], 0)
    assert result[0] is not original
    assert result[0].info.alive is False
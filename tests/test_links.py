import base64
import json

import pytest

from bestsub.parser.links import (
    ParseError,
    parse_hysteria2,
    parse_proxy,
    parse_shadowsocks,
    parse_ssr,
    parse_trojan,
    parse_vless,
    parse_vmess,
)


def b64(text):
    return base64.b64encode(text.encode()).decode()


def b64url(text):
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def vmess_link(**fields):
    return "vmess://" + b64(json.dumps(fields))


def test_parse_proxy_unknown_scheme_returns_none():
    assert parse_proxy("http://example.com/") is None


@pytest.mark.parametrize(
    "link, expected",
    [
        ("ss://aes-128-gcm:password@example.com:443#n", "ss"),
        ("trojan://password@example.com:443#n", "trojan"),
        ("vless://uuid-value@example.com:443#n", "vless"),
        ("hy2://password@example.com:443#n", "hysteria2"),
        ("hysteria2://password@example.com:443#n", "hysteria2"),
    ],
)
def test_parse_proxy_dispatches_by_scheme(link, expected):
    assert parse_proxy(link)["type"] == expected


def test_shadowsocks_encoded_userinfo():
    link = "ss://" + b64("aes-256-gcm:password") + "@example.com:8388#My%20Node"
    assert parse_shadowsocks(link) == {
        "name": "My Node",
        "type": "ss",
        "server": "example.com",
        "port": 8388,
        "cipher": "aes-256-gcm",
        "password": "password",
    }


def test_shadowsocks_fully_encoded():
    link = "ss://" + b64("aes-128-gcm:password@example.com:443") + "#node"
    result = parse_shadowsocks(link)
    assert result["server"] == "example.com"
    assert result["port"] == 443
    assert result["cipher"] == "aes-128-gcm"
    assert result["password"] == "password"
    assert result["name"] == "node"


def test_shadowsocks_bad_port():
    link = "ss://" + b64("aes-128-gcm:password@example.com:port")
    with pytest.raises(ParseError):
        parse_shadowsocks(link)


def test_shadowsocks_missing_separator():
    with pytest.raises(ParseError):
        parse_shadowsocks("ss://" + b64("nothing-here"))


def test_shadowsocks_wrong_prefix():
    with pytest.raises(ParseError):
        parse_shadowsocks("trojan://password@example.com:443")


SSR_SERVER = "198.51.100.7:8443:auth_aes128_md5:aes-256-cfb:tls1.2_ticket_auth:" + b64url("password")


def test_ssr_with_params():
    body = (
        SSR_SERVER
        + "/?obfsparam=" + b64url("obfs.example.com")
        + "&protoparam=" + b64url("proto-param")
        + "&remarks=" + b64url("node one")
    )
    result = parse_ssr("ssr://" + b64url(body))
    assert result == {
        "name": "node one",
        "server": "198.51.100.7",
        "port": 8443,
        "password": "password",
        "cipher": "aes-256-cfb",
        "obfs": "tls1.2_ticket_auth",
        "obfs-param": "obfs.example.com",
        "protocol": "auth_aes128_md5",
        "protocol-param": "proto-param",
    }
    assert "type" not in result


def test_ssr_without_params_has_empty_name():
    assert parse_ssr("ssr://" + b64url(SSR_SERVER))["name"] == ""


def test_ssr_empty_remarks_uses_address():
    result = parse_ssr("ssr://" + b64url(SSR_SERVER + "/?obfsparam="))
    assert result["name"] == "198.51.100.7:8443"


def test_ssr_too_few_parts():
    with pytest.raises(ParseError):
        parse_ssr("ssr://" + b64url("198.51.100.7:8443:origin"))


def test_ssr_bad_port():
    with pytest.raises(ParseError):
        parse_ssr("ssr://" + b64url("host:abc:origin:aes-256-cfb:plain:" + b64url("password")))


def test_trojan_full():
    link = (
        "trojan://password@example.com:443?security=tls&sni=sni.example.com"
        "&type=ws&path=/ws&host=cdn.example.com&allowInsecure=1#node"
    )
    result = parse_trojan(link)
    assert result["name"] == "node"
    assert result["server"] == "example.com"
    assert result["port"] == 443
    assert result["password"] == "password"
    assert result["network"] == "ws"
    assert result["tls"] is True
    assert result["sni"] == "sni.example.com"
    assert result["skip-cert-verify"] is True
    assert result["allowInsecure"] == "1"
    assert result["ws-opts"] == {"path": "/ws", "headers": {"Host": "cdn.example.com"}}


def test_trojan_defaults():
    result = parse_trojan("trojan://password@example.com:443")
    assert result["network"] == "original"
    assert result["skip-cert-verify"] is False
    assert "tls" not in result
    assert "ws-opts" not in result


def test_trojan_grpc():
    result = parse_trojan("trojan://password@example.com:443?type=grpc&serviceName=svc")
    assert result["grpc-opts"] == {"serviceName": "svc"}


def test_trojan_without_port_is_none():
    assert parse_trojan("trojan://password@example.com") is None


def test_trojan_non_numeric_port():
    with pytest.raises(ParseError):
        parse_trojan("trojan://password@example.com:abc")


def test_trojan_control_character_rejected():
    with pytest.raises(ParseError):
        parse_trojan("trojan://password@example.com:443#node\r")


def test_trojan_keeps_escaped_userinfo():
    assert parse_trojan("trojan://pa%40ss@example.com:443")["password"] == "pa%40ss"


def test_vless_full():
    link = (
        "vless://uuid-value@example.com:443?type=ws&security=reality&sni=sni.example.com"
        "&fp=chrome&pbk=publickey&sid=ab12&path=/ws&host=cdn.example.com"
        "&serviceName=svc&flow=xtls-rprx-vision&udp=true&mode=gun#node"
    )
    result = parse_vless(link)
    assert result["name"] == "node"
    assert result["server"] == "example.com"
    assert result["port"] == 443
    assert result["uuid"] == "uuid-value"
    assert result["network"] == "ws"
    assert result["tls"] is True
    assert result["udp"] is True
    assert result["servername"] == "sni.example.com"
    assert result["client-fingerprint"] == "chrome"
    assert result["flow"] == "xtls-rprx-vision"
    assert result["ws-opts"] == {"path": "/ws", "headers": {"Host": "cdn.example.com"}}
    assert result["reality-opts"] == {"public-key": "publickey", "short-id": "ab12"}
    assert result["grpc-opts"] == {"grpc-service-name": "svc"}
    assert result["mode"] == "gun"


def test_vless_security_none_disables_tls():
    result = parse_vless("vless://uuid-value@example.com:443?security=none")
    assert result["tls"] is False
    assert result["udp"] is False


def test_vless_without_query_defaults():
    result = parse_vless("vless://uuid-value@example.com:443")
    assert result["tls"] is True
    assert result["network"] == ""


def test_vless_wrong_scheme():
    with pytest.raises(ParseError):
        parse_vless("trojan://password@example.com:443")


def test_vless_without_port_is_none():
    assert parse_vless("vless://uuid-value@example.com") is None


def test_vmess_ws():
    link = vmess_link(
        v="2", ps="node", add="example.com", port="443", id="uuid-value", aid=0,
        net="ws", host="cdn.example.com", path="/ws", tls="tls",
        sni="sni.example.com", alpn="h2,http/1.1",
    )
    assert parse_vmess(link) == {
        "name": "node",
        "type": "vmess",
        "server": "example.com",
        "port": 443,
        "uuid": "uuid-value",
        "alterId": 0,
        "cipher": "auto",
        "network": "ws",
        "tls": True,
        "servername": "sni.example.com",
        "ws-opts": {"path": "/ws", "headers": {"Host": "cdn.example.com"}},
        "alpn": ["h2", "http/1.1"],
    }


def test_vmess_grpc_numeric_port():
    link = vmess_link(add="example.com", port=8443, id="uuid-value", aid="2", net="grpc", path="svc")
    result = parse_vmess(link)
    assert result["port"] == 8443
    assert result["alterId"] == 2
    assert result["grpc-opts"] == {"serviceName": "svc"}
    assert result["tls"] is False
    assert "alpn" not in result


def test_vmess_missing_aid_defaults_to_zero():
    assert parse_vmess(vmess_link(add="example.com", port=443))["alterId"] == 0


def test_vmess_keys_match_case_insensitively():
    result = parse_vmess("vmess://" + b64(json.dumps({"PS": "node", "Add": "example.com", "port": 443})))
    assert result["name"] == "node"
    assert result["server"] == "example.com"


@pytest.mark.parametrize("port", [None, True, [443], "abc"])
def test_vmess_bad_port(port):
    with pytest.raises(ParseError):
        parse_vmess(vmess_link(add="example.com", port=port))


def test_vmess_bad_alter_id():
    with pytest.raises(ParseError):
        parse_vmess(vmess_link(add="example.com", port=443, aid="x"))


def test_vmess_invalid_base64():
    with pytest.raises(ParseError):
        parse_vmess("vmess://not base64!")


def test_vmess_invalid_json():
    with pytest.raises(ParseError):
        parse_vmess("vmess://" + b64("{not json"))


def test_hysteria2_full():
    link = (
        "hysteria2://password@example.com:443?obfs=salamander&obfs-password=secret"
        "&sni=sni.example.com&insecure=1&mport=1000-2000#hy"
    )
    assert parse_hysteria2(link) == {
        "type": "hysteria2",
        "name": "hy",
        "server": "example.com",
        "port": 443,
        "ports": "1000-2000",
        "password": "password",
        "obfs": "salamander",
        "obfs-password": "secret",
        "sni": "sni.example.com",
        "skip-cert-verify": True,
        "insecure": "1",
        "mport": "1000-2000",
    }


def test_hysteria2_missing_port():
    with pytest.raises(ParseError):
        parse_hysteria2("hy2://password@example.com")


def test_hysteria2_missing_server():
    with pytest.raises(ParseError):
        parse_hysteria2("hysteria2://password@:443")


def test_hysteria2_wrong_prefix():
    with pytest.raises(ParseError):
        parse_hysteria2("ss://aes-128-gcm:password@example.com:443")
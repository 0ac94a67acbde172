# bestsub

bestsub is a library for working with proxy subscriptions. It provides:

- download and parsing of subscription content. The content may be a Clash
  `proxies:` YAML file, plain share links, or base64-encoded share links.
- parsers for `ss://`, `ssr://`, `vmess://`, `vless://`, `trojan://`,
  `hysteria2://` and `hy2://` links. Each parser returns a Clash-style
  mapping.
- removal of duplicate proxies, which are proxies that resolve to the same
  IP address and port.
- checks run through a proxy: an alive test with its delay, service unlock
  tests and a download speed test.
- country detection from name rules or geo-IP services, flag emoji, and
  the rate multiplier read from the proxy's name.
- saving result files into an `output` directory.

## Installation

```
pip install .
```

## Configuration

`bestsub.config` reads the YAML configuration. Keys use dashes, and the
dataclass fields use underscores.

```python
from bestsub.config import load_config, set_config

config = load_config("config.yaml")   # raises ValueError on malformed content
set_config(config)                    # used by the modules below via get_config()
```

```yaml
log-level: info
sub-urls:
  - https://example.com/sub
sub-urls-retry: 3
type-include: [vless, trojan]
check:
  concurrent: 50
  timeout: 5000            # per-request timeout of proxy sessions, milliseconds
  speed-test-url:
    - https://example.com/100MB.bin
  download-size: 10        # MB read at most
  download-timeout: 10     # seconds
  speed-skip-name: "(?i)expire"
proxy:                     # optional upstream proxy for downloads
  type: http               # http or socks
  address: http://localhost:8080
```

## Parsing share links

```python
from bestsub.parser.links import parse_proxy, ParseError

raw = parse_proxy("trojan://password@example.com:443?security=tls&sni=example.com#demo")
# {'name': 'demo', 'type': 'trojan', 'server': 'example.com', 'port': 443, ...}
```

`parse_proxy` returns `None` for schemes it does not know. It raises
`ParseError`, a `ValueError`, for malformed links. `bestsub.parser.b64`
offers `is_base64_string` and `decode_base64`. Both accept standard and
URL-safe base64 with or without padding.

## Fetching subscriptions

```python
from bestsub.fetch import get_proxies, fetch_subscription, parse_subscription

proxies = get_proxies()           # every configured sub-url, fetched concurrently
data = fetch_subscription("https://example.com/sub")   # raises ConnectionError
raws = parse_subscription(data, "https://example.com/sub")
```

Downloads go through `bestsub.utils.new_http_session()`. This session uses
the configured upstream proxy and a 30-second timeout. When `type-include`
is set, only proxies of those types are kept.

## Deduplicating and checking

```python
from bestsub.info.dedup import deduplicate_proxies
from bestsub.checker import Checker

proxies = deduplicate_proxies(proxies, concurrent=50)
for proxy in proxies:
    proxy.open()                  # raises UnsupportedProxyError if it cannot be routed
    with Checker(proxy) as checker:
        checker.alive_test("https://gstatic.com/generate_204", 204)
        if proxy.info.alive:
            checker.openai_test()
            checker.youtube_test()
            checker.netflix_test()
            checker.check_speed()
    print(proxy.raw["name"], proxy.info.delay, proxy.info.speed, proxy.info.unlock)
```

Proxy sessions are built with `requests`. They can route only through proxy
descriptions of type `http` and `socks5`. Any other type raises
`UnsupportedProxyError`, and `bestsub.fetch.new_proxy` returns `None` for it.

## Naming

`bestsub.info.naming` provides the following:

- `load_country_rules(path)` reads a YAML list of `name`/`recognition` pairs.
- `country_code_regex(proxy, rules)` sets `proxy.info.country` from the
  first rule that matches the name, or `UN` when none matches.
- `country_code_from_api(proxy)` asks geo-IP services through the proxy's
  open session.
- `get_flag(code)` and `country_flag(proxy)` produce a flag emoji.
- `parse_rate(proxy)` reads a multiplier such as `x1.5` from the name.

```yaml
- name: US
  recognition: "(?i)united states|美国|\\bUS\\b"
```

## Saving and logging

`bestsub.saver.local.save_to_local(data, filename)` writes to `output/`
beside the running program. `LocalSaver(base_path)` writes under another
directory. `bestsub.logger` prints coloured log lines at a level chosen
with `set_log_level`. Its `mask_url` hides most of a URL.

## What it does not do

The package has no command-line program and no periodic checking loop. It
does not reload the configuration when the file changes. It has no
built-in HTTP server for the results and cannot upload to a GitHub Gist,
a Cloudflare worker or WebDAV. It does not run scripts before or after
saving, and it does not tell a mihomo instance to refresh its providers.
Only local file saving is included.
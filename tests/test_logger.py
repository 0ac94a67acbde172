import re

import pytest

from bestsub import logger


@pytest.fixture(autouse=True)
def reset_level():
    logger.set_log_level("debug")
    yield
    logger.set_log_level("debug")


def test_line_format(capsys):
    logger.warn("hello %s", "world")
    out = capsys.readouterr().out
    assert out.startswith("\033[33mWARN \033[0m [")
    assert out.endswith("] hello world\n")
    assert re.search(r"\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\]", out)


def test_message_without_args_is_printed_verbatim(capsys):
    logger.info("100% done")
    assert capsys.readouterr().out.endswith("] 100% done\n")


def test_level_filters_lower_messages(capsys):
    logger.set_log_level("warn")
    logger.debug("d")
    logger.info("i")
    assert capsys.readouterr().out == ""
    logger.warn("w")
    logger.fatal("f")
    out = capsys.readouterr().out
    assert "WARN" in out and "FATAL" in out


def test_unknown_level_is_ignored(capsys):
    logger.set_log_level("error")
    logger.set_log_level("loud")
    logger.warn("hidden")
    assert capsys.readouterr().out == ""


def test_error_and_debug_carry_location(capsys):
    logger.error("boom")
    logger.debug("trace")
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert all("test_logger.py:" in line for line in lines)


def test_info_has_no_location(capsys):
    logger.info("plain")
    assert "test_logger.py" not in capsys.readouterr().out


def test_panic_uses_error_colour(capsys):
    logger.panic("bad")
    assert capsys.readouterr().out.startswith("\033[31mPANIC\033[0m")


def test_mask_url_worked_example():
    url = "https://example.com/api/v1/subscribe?token=x"
    assert logger.mask_url(url) == "https://e***e.com/v1/su...=x"


def test_mask_url_single_segment_path():
    assert logger.mask_url("https://sub.example.com/link") == "https://s***e.com//link"


def test_mask_url_without_scheme_is_unchanged():
    assert logger.mask_url("not a url") == "not a url"


def test_mask_url_host_without_dot_and_short_parts():
    url = "https://localhost/ab/cd"
    assert logger.mask_url(url) == url


def test_mask_url_short_subdomain_kept():
    assert logger.mask_url("http://ab.com") == "http://ab.com/"
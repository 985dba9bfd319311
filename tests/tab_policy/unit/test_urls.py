from tabsorter.tab_policy.taxonomy import normalize_color
from tabsorter.tab_policy.urls import host_and_path, host_of, path_of


def test_host_of_lowercases_and_strips_trailing_dot():
    assert host_of("https://Mail.Example.COM/inbox") == "mail.example.com"
    assert host_of("http://example.com./") == "example.com"
    assert host_of("https://user:pw@example.com:8443/x") == "example.com"


def test_non_web_urls_have_no_host():
    assert host_of("chrome://extensions") is None
    assert host_of("about:blank") is None
    assert host_of("file:///tmp/x.html") is None
    assert host_of("") is None
    assert path_of("chrome://newtab/") is None


def test_path_of_defaults_to_root():
    assert path_of("https://example.com") == "/"
    assert path_of("https://example.com/Docs/x?q=1#frag") == "/Docs/x"


def test_host_and_path_pairs():
    assert host_and_path("https://example.com/a") == ("example.com", "/a")
    assert host_and_path(None) == (None, "/")
    assert host_and_path("mailto:x@example.com") == (None, "/")


def test_normalize_color_falls_back_to_grey():
    assert normalize_color("blue") == "blue"
    assert normalize_color(" Cyan ") == "cyan"
    assert normalize_color("magenta") == "grey"
    assert normalize_color(None) == "grey"

"""Tests for URL normalization and scope policy."""

import pytest

from politecrawl.urls import ScopePolicy, host_of, normalize


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize("raw, expected", [
        ("HTTPS://Example.COM:443/docs?b=2#intro", "https://example.com/docs?b=2"),
        ("http://example.com", "http://example.com/"),
        ("http://example.com:80/a", "http://example.com/a"),
        ("https://example.com:8443/a", "https://example.com:8443/a"),
        ("http://example.com:443/", "http://example.com:443/"),
        ("  http://example.com/path  ", "http://example.com/path"),
        ("http://user:pw@Example.com/x", "http://user:pw@example.com/x"),
        ("http://example.com/A/B?Q=1", "http://example.com/A/B?Q=1"),
    ])
    def test_canonical_forms(self, raw, expected):
        assert normalize(raw) == expected

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "   ",
        "mailto:someone@example.com",
        "MAILTO:someone@example.com",
        "javascript:void(0)",
        "tel:+123456",
        "ftp://example.com/file",
        "/relative/path",
        "http://",
        "http://example.com:notaport/",
        "http://[::1",
    ])
    def test_rejected(self, raw):
        assert normalize(raw) is None

    def test_fragment_only_difference_collapses(self):
        assert normalize("http://a.com/p#one") == normalize("http://a.com/p#two")

    @pytest.mark.parametrize("raw", [
        "HTTPS://Example.COM:443/docs?b=2#intro",
        "http://EXAMPLE.com",
        "http://example.com:8080",
        "https://sub.Example.com/a/b/?x=1&y=2",
        "http://user@Host.com:80/#frag",
        "http://[::1]:8080/x",
    ])
    def test_idempotent(self, raw):
        once = normalize(raw)
        assert once is not None
        assert normalize(once) == once


class TestScopePolicy:
    """Tests for ScopePolicy."""

    def test_exact_host_in_scope(self):
        scope = ScopePolicy({"example.com"})
        assert scope.is_in_scope("https://example.com/page")

    def test_subdomain_in_scope(self):
        scope = ScopePolicy({"example.com"})
        assert scope.is_in_scope("https://docs.example.com/page")

    def test_suffix_without_dot_not_in_scope(self):
        scope = ScopePolicy({"example.com"})
        assert not scope.is_in_scope("https://badexample.com/")

    def test_other_host_not_in_scope(self):
        scope = ScopePolicy({"example.com"})
        assert not scope.is_in_scope("https://other.org/")

    def test_hostless_url_not_in_scope(self):
        scope = ScopePolicy({"example.com"})
        assert not scope.is_in_scope("not a url")

    def test_allowed_hosts_lowercased(self):
        scope = ScopePolicy({"Example.COM"})
        assert scope.is_in_scope("http://example.com/")

    def test_from_seeds_skips_invalid(self):
        scope = ScopePolicy.from_seeds(["https://Toscrape.com", "mailto:x@y.z", "", "http://books.toscrape.com/"])
        assert scope.allowed_hosts == {"toscrape.com", "books.toscrape.com"}

    def test_host_of(self):
        assert host_of("http://Example.com:8080/x") == "example.com"
        assert host_of("/just/a/path") is None

"""Tests for robots.txt parsing and the caching RobotsService."""

import asyncio

import aiohttp
import pytest

from politecrawl.fetcher import FetchResult
from politecrawl.robots import RobotsRules, RobotsService, longest_prefix_match, parse_robots

from conftest import FakeTransport


def robots_txt(body: str, status: int = 200) -> FetchResult:
    return FetchResult(status_code=status, body=body, content_type="text/plain")


def rules_from(body: str, agent: str = "Crawler") -> RobotsRules:
    group = parse_robots(body, agent)
    return RobotsRules(tuple(group.allow), tuple(group.disallow), group.crawl_delay, fetched_at=0, ttl=60)


class TestParseRobots:
    """Tests for parse_robots() and group selection."""

    def test_exact_agent_group_beats_wildcard(self):
        body = "User-agent: *\nDisallow: /a\n\nUser-agent: Crawler\nAllow: /a/b\n"
        group = parse_robots(body, "Crawler")
        assert group.allow == ["/a/b"]
        assert group.disallow == []

    def test_longest_prefix_wins_for_selected_group(self):
        body = "User-agent: *\nDisallow: /a\n\nUser-agent: Crawler\nAllow: /a/b\nDisallow: /a\n"
        rules = rules_from(body)
        assert rules.is_allowed("/a/b")
        assert not rules.is_allowed("/a/c")

    def test_wildcard_group_used_as_fallback(self):
        body = "User-agent: SomethingElse\nDisallow: /\n\nUser-agent: *\nDisallow: /private\n"
        group = parse_robots(body, "Crawler")
        assert group.disallow == ["/private"]

    def test_no_matching_group_allows_all(self):
        body = "User-agent: SomethingElse\nDisallow: /\n"
        rules = rules_from(body)
        assert rules.is_allowed("/anything")

    def test_keys_case_insensitive_and_comments_stripped(self):
        body = "# header comment\nUSER-AGENT: crawler  # us\nDISALLOW: /tmp # scratch\n\nCRAWL-DELAY: 3\n"
        group = parse_robots(body, "Crawler")
        assert group.disallow == ["/tmp"]
        assert group.crawl_delay == 3

    def test_empty_disallow_ignored(self):
        group = parse_robots("User-agent: *\nDisallow:\n", "Crawler")
        assert group.disallow == []

    def test_invalid_crawl_delay_ignored(self):
        group = parse_robots("User-agent: *\nCrawl-delay: soon\n", "Crawler")
        assert group.crawl_delay is None

    def test_directives_before_user_agent_ignored(self):
        group = parse_robots("Disallow: /\nUser-agent: *\nAllow: /x\n", "Crawler")
        assert group.disallow == []
        assert group.allow == ["/x"]

    def test_tie_favours_allow(self):
        rules = rules_from("User-agent: *\nAllow: /same\nDisallow: /same\n")
        assert rules.is_allowed("/same/page")

    def test_longest_prefix_match(self):
        assert longest_prefix_match(["/a", "/a/b", ""], "/a/b/c") == 4
        assert longest_prefix_match(["/x"], "/a") == -1
        assert longest_prefix_match([], "/a") == -1

    def test_crawl_delay_ms(self):
        assert rules_from("User-agent: *\nCrawl-delay: 2\n").crawl_delay_ms == 2000
        assert rules_from("User-agent: *\nCrawl-delay: 0\n").crawl_delay_ms == 0
        assert rules_from("User-agent: *\n").crawl_delay_ms == 0


class TestRobotsService:
    """Tests for RobotsService.check()."""

    @pytest.mark.asyncio
    async def test_disallowed_path(self):
        transport = FakeTransport({
            "https://a.com/robots.txt": [robots_txt("User-agent: *\nDisallow: /private\nCrawl-delay: 2\n")],
        })
        service = RobotsService(transport)
        check = await service.check("https://a.com/private/x")
        assert check.allowed is False
        assert check.crawl_delay_ms == 2000
        assert (await service.check("https://a.com/public")).allowed is True

    @pytest.mark.asyncio
    async def test_rules_cached_per_host(self):
        transport = FakeTransport({"https://a.com/robots.txt": [robots_txt("User-agent: *\nDisallow: /x\n")]})
        service = RobotsService(transport)
        await service.check("https://a.com/1")
        await service.check("http://a.com/2")
        assert transport.calls == ["https://a.com/robots.txt"]
        assert transport.timeouts == [service.timeout]

    @pytest.mark.asyncio
    async def test_falls_back_to_http(self):
        transport = FakeTransport({
            "https://a.com/robots.txt": [aiohttp.ClientConnectionError("refused")],
            "http://a.com/robots.txt": [robots_txt("User-agent: *\nDisallow: /\n")],
        })
        service = RobotsService(transport)
        assert (await service.check("http://a.com/page")).allowed is False
        assert transport.calls == ["https://a.com/robots.txt", "http://a.com/robots.txt"]

    @pytest.mark.asyncio
    async def test_fail_open_is_not_cached(self):
        transport = FakeTransport({
            "https://a.com/robots.txt": [asyncio.TimeoutError()],
            "http://a.com/robots.txt": [robots_txt("server error", status=503)],
        })
        service = RobotsService(transport)
        first = await service.check("https://a.com/x")
        assert first.allowed is True
        assert first.crawl_delay_ms == 0
        await service.check("https://a.com/y")
        assert len(transport.calls) == 4
        assert service.cached_hosts() == []

    @pytest.mark.asyncio
    async def test_expired_rules_replaced(self):
        now = [0.0]
        transport = FakeTransport({
            "https://a.com/robots.txt": [
                robots_txt("User-agent: *\nDisallow: /x\n"),
                robots_txt("User-agent: *\nAllow: /\n"),
            ],
        })
        service = RobotsService(transport, ttl=100, clock=lambda: now[0])
        assert (await service.check("https://a.com/x")).allowed is False
        now[0] = 50
        assert (await service.check("https://a.com/x")).allowed is False
        now[0] = 101
        assert (await service.check("https://a.com/x")).allowed is True
        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_concurrent_checks_share_one_fetch(self):
        transport = FakeTransport({"https://a.com/robots.txt": [robots_txt("User-agent: *\n")]})
        service = RobotsService(transport)
        results = await asyncio.gather(*(service.check(f"https://a.com/{i}") for i in range(10)))
        assert all(r.allowed for r in results)
        assert transport.calls == ["https://a.com/robots.txt"]

    @pytest.mark.asyncio
    async def test_non_default_port_kept(self):
        transport = FakeTransport({"https://a.com:8080/robots.txt": [robots_txt("User-agent: *\nDisallow: /\n")]})
        service = RobotsService(transport)
        assert (await service.check("http://a.com:8080/page")).allowed is False

    @pytest.mark.asyncio
    async def test_hostless_url_allowed_without_fetch(self):
        transport = FakeTransport()
        service = RobotsService(transport)
        check = await service.check("not-a-url")
        assert check.allowed is True
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_own_agent_group_selected(self):
        transport = FakeTransport({
            "https://a.com/robots.txt": [robots_txt("User-agent: *\nDisallow: /a\n\nUser-agent: Crawler\nAllow: /a/b\n")],
        })
        service = RobotsService(transport, agent="Crawler")
        assert (await service.check("https://a.com/a/b")).allowed is True

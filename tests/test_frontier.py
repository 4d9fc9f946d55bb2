"""Tests for the frontier and visited set."""

import asyncio

import pytest

from politecrawl.frontier import Frontier, VisitedSet


class TestVisitedSet:
    """Tests for claim-once enqueueing."""

    @pytest.mark.asyncio
    async def test_first_claim_enqueues(self):
        frontier, visited = Frontier(), VisitedSet()
        assert visited.claim_and_enqueue("http://a.com/", frontier) is True
        assert frontier.qsize() == 1
        assert "http://a.com/" in visited

    @pytest.mark.asyncio
    async def test_second_claim_is_noop(self):
        frontier, visited = Frontier(), VisitedSet()
        visited.claim_and_enqueue("http://a.com/", frontier)
        assert visited.claim_and_enqueue("http://a.com/", frontier) is False
        assert frontier.qsize() == 1
        assert visited.seen_count == 1

    @pytest.mark.asyncio
    async def test_none_is_rejected(self):
        frontier, visited = Frontier(), VisitedSet()
        assert visited.claim_and_enqueue(None, frontier) is False
        assert frontier.empty()

    @pytest.mark.asyncio
    async def test_concurrent_claims_enqueue_once(self):
        frontier, visited = Frontier(), VisitedSet()

        async def discover():
            await asyncio.sleep(0)
            return visited.claim_and_enqueue("http://a.com/same", frontier)

        results = await asyncio.gather(*(discover() for _ in range(50)))
        assert results.count(True) == 1
        assert frontier.qsize() == 1
        assert visited.seen_count == 1


class TestFrontier:
    """Tests for Frontier polling."""

    @pytest.mark.asyncio
    async def test_poll_returns_in_fifo_order(self):
        frontier = Frontier()
        frontier.put("http://a.com/1")
        frontier.put("http://a.com/2")
        assert await frontier.poll(0.1) == "http://a.com/1"
        assert await frontier.poll(0.1) == "http://a.com/2"

    @pytest.mark.asyncio
    async def test_poll_times_out_with_none(self):
        frontier = Frontier()
        assert await frontier.poll(0.01) is None

    @pytest.mark.asyncio
    async def test_poll_wakes_on_put(self):
        frontier = Frontier()

        async def producer():
            await asyncio.sleep(0.01)
            frontier.put("http://a.com/late")

        asyncio.create_task(producer())
        assert await frontier.poll(1.0) == "http://a.com/late"

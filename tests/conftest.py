"""Shared fakes for crawler tests."""

from collections import defaultdict
from typing import Dict, List, Optional, Union

import pytest

from politecrawl.fetcher import FetchResult


def html_page(body: str, status: int = 200) -> FetchResult:
    return FetchResult(status_code=status, body=body, content_type="text/html; charset=utf-8")


def not_found() -> FetchResult:
    return FetchResult(status_code=404, body="not found", content_type="text/plain")


class FakeTransport:
    """
    Scripted stand-in for AiohttpTransport.

    Each URL maps to a list of responses (FetchResult or exception instance)
    served in order; the last one repeats. Unknown URLs get a 404.
    """

    def __init__(self, routes: Optional[Dict[str, List[Union[FetchResult, BaseException]]]] = None):
        self.routes = {url: list(responses) for url, responses in (routes or {}).items()}
        self.calls: List[str] = []
        self.timeouts: List[Optional[float]] = []
        self.counts = defaultdict(int)
        self.opened = False
        self.closed = False

    def add(self, url: str, *responses):
        self.routes[url] = list(responses)

    async def open(self):
        self.opened = True

    async def close(self):
        self.closed = True

    async def get(self, url: str, timeout: Optional[float] = None) -> FetchResult:
        self.calls.append(url)
        self.timeouts.append(timeout)
        responses = self.routes.get(url)
        if not responses:
            return not_found()
        idx = min(self.counts[url], len(responses) - 1)
        self.counts[url] += 1
        response = responses[idx]
        if isinstance(response, BaseException):
            raise response
        return response


class RecordingSleep:
    """Async sleep replacement that records requested durations."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()

"""
Link extraction from fetched HTML.
"""

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup


def parse_links(html: str, base_url: str) -> List[str]:
    """
    Return the absolute targets of every <a href> in the page, in document
    order and without duplicates. Resolution follows <base href> when present.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")

    base = base_url
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        base = urljoin(base_url, base_tag["href"].strip())

    links = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href:
            continue
        try:
            absolute = urljoin(base, href)
        except ValueError:
            # e.g. malformed IPv6 literal in the href
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links

"""이 파일은 .py HTTP 어댑터로 requests 기반 기본 페이지 수집기를 제공합니다."""

from __future__ import annotations

import time
from typing import Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from app.core.config import FETCH_TIMEOUT_SECONDS, USER_AGENT
from app.core.errors import FetchError
from app.core.types import DomainConfig, FetchedPage
from app.core.urls import resolve

from .base import PageFetcher

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class RequestsPageFetcher(PageFetcher):
    """JavaScript를 실행하지 않는 HTTP 수집기. 렌더러가 없을 때의 기본값이다."""

    def __init__(
        self,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, **(headers or {})})

    def fetch(self, url: str) -> FetchedPage:
        started = time.monotonic()
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                allow_redirects=False,
                verify=self.verify_ssl,
            )
        except requests.RequestException as exc:
            raise FetchError(f"HTTP request failed: {exc}") from exc

        elapsed_ms = (time.monotonic() - started) * 1000.0
        headers = {key.lower(): value for key, value in response.headers.items()}
        page = FetchedPage(
            url=url,
            status=response.status_code,
            headers=headers,
            location=headers.get("location"),
            elapsed_ms=elapsed_ms,
        )
        # HTML 응답일 때만 본문과 링크를 추출한다.
        content_type = headers.get("content-type", "")
        if page.ok and any(kind in content_type for kind in HTML_CONTENT_TYPES):
            page.html = response.text
            page.links, page.images = extract_links(url, page.html)
        return page

    def close(self) -> None:
        self.session.close()


def extract_links(base_url: str, html: str) -> Tuple[List[str], List[str]]:
    # a[href]와 img[src]를 절대 URL로 바꾸고 순서를 유지하며 중복을 없앤다.
    soup = BeautifulSoup(html, "html.parser")
    links: List[str] = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        absolute = resolve(base_url, anchor.get("href"))
        if absolute and absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    images = [src for src in (resolve(base_url, img.get("src")) for img in soup.find_all("img")) if src]
    return links, images


def requests_fetcher_factory(domain: DomainConfig) -> PageFetcher:
    # 도메인마다 독립된 세션을 만든다(동시 크롤 간 공유 금지).
    return RequestsPageFetcher()

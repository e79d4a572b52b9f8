"""이 파일은 .py 테스트 설정 모듈로 경로 초기화와 공용 픽스처(가짜 사이트, 메모리 DB)를 제공합니다."""

import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.adapters.base import PageFetcher  # noqa: E402
from app.core.types import DomainConfig, FetchedPage  # noqa: E402
from app.core.urls import normalize_url  # noqa: E402
from app.db.session import build_engine, build_session_factory, init_db  # noqa: E402

# 모든 보안 헤더가 정상인 응답 헤더 묶음.
SECURE_HEADERS = {
    "Content-Type": "text/html",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'",
    "Permissions-Policy": "geolocation=()",
}


class FakeSite:
    """URL -> 응답(페이지 또는 예외) 매핑. 등록되지 않은 URL은 404를 돌려준다."""

    def __init__(self, origin: str = "https://example.test") -> None:
        self.origin = origin
        self.responses: Dict[str, object] = {}
        self.calls: List[str] = []
        self.opened = 0
        self.closed = 0
        self.lock = threading.Lock()
        self.on_fetch = None

    def url(self, path: str) -> str:
        return normalize_url(f"{self.origin}{path}")

    def page(
        self,
        path: str,
        html: str = "",
        links: Optional[List[str]] = None,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        metrics: Optional[Dict[str, float]] = None,
        console_errors: Optional[List[str]] = None,
    ) -> None:
        url = self.url(path)
        self.responses[url] = FetchedPage(
            url=url,
            status=status,
            headers=dict(headers if headers is not None else SECURE_HEADERS),
            html=html,
            links=[f"{self.origin}{link}" if link.startswith("/") else link for link in (links or [])],
            metrics=dict(metrics or {}),
            console_errors=list(console_errors or []),
        )

    def redirect(self, path: str, location: str, status: int = 301) -> None:
        url = self.url(path)
        self.responses[url] = FetchedPage(url=url, status=status, location=location)

    def fail(self, path: str, error: Exception) -> None:
        self.responses[self.url(path)] = error

    def fetch(self, url: str) -> FetchedPage:
        with self.lock:
            self.calls.append(url)
        if self.on_fetch is not None:
            self.on_fetch(url)
        response = self.responses.get(url)
        if response is None:
            return FetchedPage(url=url, status=404)
        if isinstance(response, Exception):
            raise response
        return response

    def factory(self, domain: DomainConfig) -> PageFetcher:
        self.opened += 1
        return FakeFetcher(self)


class FakeFetcher(PageFetcher):
    def __init__(self, site: FakeSite) -> None:
        self.site = site

    def fetch(self, url: str) -> FetchedPage:
        return self.site.fetch(url)

    def close(self) -> None:
        self.site.closed += 1


class FakeClock:
    # sleep이 시간을 앞당기는 가짜 시계.
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def domain() -> DomainConfig:
    return DomainConfig(
        hostname="example.test",
        tier="primary",
        crawl_budget_pages=50,
        crawl_budget_depth=5,
        concurrency=2,
        requests_per_second=1000,
        max_runtime_minutes=5,
    )


@pytest.fixture
def db_session():
    engine = build_engine("sqlite://")
    init_db(engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()

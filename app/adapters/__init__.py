"""이 파일은 .py 어댑터 패키지 초기화 모듈로 페이지 수집기를 노출합니다."""

from .base import FetcherFactory, PageFetcher
from .http import RequestsPageFetcher, extract_links, requests_fetcher_factory

__all__ = [
    "FetcherFactory",
    "PageFetcher",
    "RequestsPageFetcher",
    "extract_links",
    "requests_fetcher_factory",
]

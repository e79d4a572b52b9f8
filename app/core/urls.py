"""이 파일은 .py URL 정규화 모듈로 방문 집합 키와 동일 출처 판정을 제공합니다."""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}
CRAWLABLE_SCHEMES = {"http", "https"}


def normalize_url(url: str) -> str:
    # scheme/host 소문자화, 기본 포트 제거, 빈 path는 "/", query 정렬, fragment 제거.
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host
    if port and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    path = parts.path or "/"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def origin_of(url: str) -> str:
    parts = urlsplit(normalize_url(url))
    return f"{parts.scheme}://{parts.netloc}"


def same_origin(url: str, origin: str) -> bool:
    return origin_of(url) == origin_of(origin)


def is_crawlable(url: str) -> bool:
    # mailto:, tel:, javascript: 등은 프런티어 대상이 아니다.
    return urlsplit(url).scheme.lower() in CRAWLABLE_SCHEMES


def resolve(base: str, href: Optional[str]) -> Optional[str]:
    # 상대 링크를 절대 URL로 바꾼다. 파싱 불가 값은 None.
    if href is None:
        return None
    href = href.strip()
    if not href:
        return None
    try:
        return urljoin(base, href)
    except ValueError:
        return None


def route_of(url: str) -> str:
    # 지문/표시용 route: 정규화된 전체 URL을 그대로 쓴다.
    return normalize_url(url)

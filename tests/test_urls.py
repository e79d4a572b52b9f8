"""이 파일은 .py 테스트 모듈로 URL 정규화와 동일 출처 판정을 검증합니다."""

from app.core.urls import is_crawlable, normalize_url, resolve, same_origin


def test_normalize_lowercases_and_drops_default_port() -> None:
    assert normalize_url("HTTPS://Example.TEST:443/Path") == "https://example.test/Path"
    assert normalize_url("http://example.test:80") == "http://example.test/"
    assert normalize_url("http://example.test:8080/a") == "http://example.test:8080/a"


def test_normalize_sorts_query_and_strips_fragment() -> None:
    assert normalize_url("https://example.test/s?b=2&a=1#section") == "https://example.test/s?a=1&b=2"
    assert normalize_url("https://example.test/s?a=") == "https://example.test/s?a="


def test_same_origin_compares_normalized_origins() -> None:
    assert same_origin("https://EXAMPLE.test/x", "https://example.test")
    assert not same_origin("http://example.test/x", "https://example.test")
    assert not same_origin("https://cdn.example.test/x", "https://example.test")


def test_crawlable_schemes_and_resolution() -> None:
    assert is_crawlable("https://example.test/")
    assert not is_crawlable("mailto:team@example.test")
    assert not is_crawlable("javascript:void(0)")
    assert resolve("https://example.test/a/b", "../c") == "https://example.test/c"
    assert resolve("https://example.test/", "   ") is None
    assert resolve("https://example.test/", None) is None

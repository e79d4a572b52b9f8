"""이 파일은 .py 테스트 모듈로 크롤 엔진의 순회 규칙, 예산, 실패 처리, 수집기 정리를 검증합니다."""

import threading
from dataclasses import replace
from typing import List

from app.core.errors import FetchError
from app.core.plugin_base import BaseCheck
from app.core.types import Category, DomainConfig, FetchedPage, Finding
from app.services.crawl_engine import CrawlEngine


class BrokenCheck(BaseCheck):
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        raise ValueError("boom")


class RecordingCheck(BaseCheck):
    def __init__(self) -> None:
        super().__init__("seo_recorder", Category.SEO)
        self.seen: List[str] = []

    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        self.seen.append(page.url)
        return []


class ExplodingEvent:
    def is_set(self) -> bool:
        raise RuntimeError("coordinator failure")


def _rule_ids(outcome) -> List[str]:
    return sorted(finding.rule_id for finding in outcome.findings)


def test_each_normalized_url_is_fetched_once(site, domain) -> None:
    site.page("/", links=["/a", "/b", "/a#top", "/b?y=2&x=1"])
    site.page("/a", links=["/", "/b"])
    site.page("/b", links=["/a"])
    site.page("/b?x=1&y=2")

    outcome = CrawlEngine([], site.factory).crawl(domain)

    expected = {site.url("/"), site.url("/a"), site.url("/b"), site.url("/b?x=1&y=2")}
    assert expected.issubset(set(site.calls))
    assert len(site.calls) == len(set(site.calls))
    assert outcome.stop_reason == "frontier_exhausted"
    assert not outcome.partial


def test_page_budget_stops_new_fetches(site, domain) -> None:
    site.page("/", links=[f"/p{index}" for index in range(10)])
    for index in range(10):
        site.page(f"/p{index}")

    outcome = CrawlEngine([], site.factory).crawl(replace(domain, crawl_budget_pages=3))

    assert len(site.calls) == 3
    assert outcome.pages_crawled == 3
    assert outcome.stop_reason == "page_budget"


def test_redirect_hops_count_against_page_budget(site, domain) -> None:
    site.redirect("/", "/home")
    site.page("/home", links=["/a"])
    site.page("/a")

    outcome = CrawlEngine([], site.factory).crawl(replace(domain, crawl_budget_pages=1))

    assert site.calls == [site.url("/")]
    assert outcome.stop_reason == "page_budget"


def test_page_budget_bounds_distinct_fetches_across_redirects(site, domain) -> None:
    site.page("/", links=["/r1", "/r2", "/p"])
    site.redirect("/r1", "/t1")
    site.redirect("/r2", "/t2")
    site.page("/t1")
    site.page("/t2")
    site.page("/p")

    outcome = CrawlEngine([], site.factory).crawl(replace(domain, crawl_budget_pages=4))

    assert len(set(site.calls)) <= 4
    assert outcome.stop_reason == "page_budget"


def test_depth_budget_limits_traversal(site, domain) -> None:
    site.page("/", links=["/l1"])
    site.page("/l1", links=["/l2"])
    site.page("/l2", links=["/l3"])
    site.page("/l3")

    outcome = CrawlEngine([], site.factory).crawl(replace(domain, crawl_budget_depth=1))

    assert site.calls == [site.url("/"), site.url("/l1")]
    assert outcome.stop_reason == "depth_budget"


def test_external_links_reported_once_and_never_fetched(site, domain) -> None:
    site.page("/", links=["https://other.test/x", "/a", "mailto:team@example.test", "tel:123"])
    site.page("/a", links=["https://other.test/x#frag", "https://other.test/y"])

    outcome = CrawlEngine([], site.factory).crawl(domain)

    externals = [finding for finding in outcome.findings if finding.rule_id == "external-link"]
    assert sorted(finding.signature for finding in externals) == [
        "https://other.test/x",
        "https://other.test/y",
    ]
    assert all(not finding.route_scoped for finding in externals)
    assert all("other.test" not in call for call in site.calls)


def test_fetch_failures_become_findings_and_traversal_continues(site, domain) -> None:
    site.page("/", links=["/broken", "/gone", "/ok"])
    site.fail("/broken", FetchError("timed out"))
    site.page("/ok", links=["/deeper"])
    site.page("/deeper")

    outcome = CrawlEngine([], site.factory).crawl(domain)

    assert _rule_ids(outcome) == ["page-fetch-error", "page-http-error"]
    assert site.url("/deeper") in site.calls
    assert outcome.status_codes[404] == 1


def test_three_redirect_hops_are_followed(site, domain) -> None:
    site.page("/", links=["/r1"])
    site.redirect("/r1", "/r2")
    site.redirect("/r2", "/r3")
    site.redirect("/r3", "/final")
    site.page("/final", links=["/after"])
    site.page("/after")

    outcome = CrawlEngine([], site.factory).crawl(domain)

    assert "redirect-chain-too-long" not in _rule_ids(outcome)
    assert site.url("/after") in site.calls


def test_fourth_redirect_yields_single_finding(site, domain) -> None:
    site.page("/", links=["/r1"])
    site.redirect("/r1", "/r2")
    site.redirect("/r2", "/r3")
    site.redirect("/r3", "/r4")
    site.redirect("/r4", "/final")
    site.page("/final")

    outcome = CrawlEngine([], site.factory).crawl(domain)

    assert _rule_ids(outcome).count("redirect-chain-too-long") == 1
    assert site.url("/final") not in site.calls


def test_module_exception_does_not_stop_other_modules(site, domain) -> None:
    site.page("/", links=["/a"])
    site.page("/a")
    recorder = RecordingCheck()
    checks = [BrokenCheck("ux_broken", Category.UX), recorder]

    outcome = CrawlEngine(checks, site.factory).crawl(domain)

    failures = [finding for finding in outcome.findings if finding.rule_id == "check-module-failed"]
    assert len(failures) == 2
    assert {finding.signature for finding in failures} == {"ux_broken"}
    assert {finding.category for finding in failures} == {Category.UX}
    assert sorted(recorder.seen) == sorted([site.url("/"), site.url("/a")])


def test_domain_runtime_deadline_makes_partial_result(site, domain, fake_clock) -> None:
    site.page("/", links=[f"/p{index}" for index in range(10)])
    for index in range(10):
        site.page(f"/p{index}")
    site.on_fetch = lambda url: fake_clock.advance(20)
    limited = replace(domain, concurrency=1, max_runtime_minutes=1)

    outcome = CrawlEngine([], site.factory, clock=fake_clock, sleep=fake_clock.sleep).crawl(limited)

    assert outcome.stop_reason == "deadline"
    assert outcome.partial
    assert len(site.calls) == 3


def test_run_deadline_wins_when_earlier(site, domain, fake_clock) -> None:
    site.page("/", links=[f"/p{index}" for index in range(10)])
    for index in range(10):
        site.page(f"/p{index}")
    site.on_fetch = lambda url: fake_clock.advance(20)
    limited = replace(domain, concurrency=1)

    engine = CrawlEngine([], site.factory, clock=fake_clock, sleep=fake_clock.sleep)
    outcome = engine.crawl(limited, deadline=fake_clock() + 30)

    assert outcome.stop_reason == "deadline"
    assert len(site.calls) == 2


def test_cancelled_crawl_fetches_nothing_and_closes_fetcher(site, domain) -> None:
    site.page("/")
    event = threading.Event()
    event.set()

    outcome = CrawlEngine([], site.factory, cancel_event=event).crawl(domain)

    assert site.calls == []
    assert outcome.stop_reason == "cancelled"
    assert outcome.partial
    assert site.closed == 1


def test_fetcher_closed_when_crawl_raises(site, domain) -> None:
    site.page("/")
    engine = CrawlEngine([], site.factory, cancel_event=ExplodingEvent())
    try:
        engine.crawl(domain)
    except RuntimeError as exc:
        assert "coordinator failure" in str(exc)
    else:
        raise AssertionError("RuntimeError not raised")
    assert site.opened == 1
    assert site.closed == 1


def test_inspect_route_runs_checks_without_following_links(site, domain) -> None:
    site.page("/a", links=["/b", "https://other.test/"])
    site.page("/b")
    recorder = RecordingCheck()

    result = CrawlEngine([recorder], site.factory).inspect_route(domain, site.url("/a"))

    assert result.fetched
    assert site.calls == [site.url("/a")]
    assert recorder.seen == [site.url("/a")]
    assert [finding.rule_id for finding in result.findings] == ["external-link"]
    assert site.closed == 1


class ThreadViewClock:
    """워커마다 자기 대기 시각을 보는 가짜 시계. 전역 시각은 advance로만 움직인다."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self._local = threading.local()

    def __call__(self) -> float:
        return max(self.now, getattr(self._local, "view", self.now))

    def sleep(self, seconds: float) -> None:
        self._local.view = self() + seconds


def test_concurrent_workers_respect_request_rate(site, domain) -> None:
    site.page("/", links=[f"/p{index}" for index in range(8)])
    for index in range(8):
        site.page(f"/p{index}")
    clock = ThreadViewClock()
    starts: List[float] = []
    lock = threading.Lock()

    def record(url: str) -> None:
        with lock:
            starts.append(clock())

    site.on_fetch = record
    paced = replace(domain, concurrency=4, requests_per_second=2)

    outcome = CrawlEngine([], site.factory, clock=clock, sleep=clock.sleep).crawl(paced)

    assert outcome.pages_crawled == 9
    starts.sort()
    assert len(starts) == 9
    gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
    assert min(gaps) >= 0.5 - 1e-9

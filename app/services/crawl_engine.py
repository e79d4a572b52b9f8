"""이 파일은 .py 크롤 엔진 모듈로 예산/속도 제한을 지키며 도메인을 BFS 순회하고 점검 모듈을 실행합니다."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import closing
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Sequence, Set, Tuple

from app.adapters.base import FetcherFactory, PageFetcher
from app.core.config import MAX_REDIRECT_HOPS
from app.core.logging import log_event
from app.core.plugin_base import BaseCheck
from app.core.types import (
    Category,
    DomainConfig,
    FailurePayload,
    FetchedPage,
    Finding,
    LinkPayload,
    Severity,
)
from app.core.urls import is_crawlable, normalize_url, resolve, same_origin

from .rate_pacer import RatePacer

logger = logging.getLogger(__name__)

STOP_FRONTIER_EXHAUSTED = "frontier_exhausted"
STOP_PAGE_BUDGET = "page_budget"
STOP_DEPTH_BUDGET = "depth_budget"
STOP_DEADLINE = "deadline"
STOP_CANCELLED = "cancelled"
PARTIAL_STOP_REASONS = {STOP_DEADLINE, STOP_CANCELLED}


@dataclass
class CrawlOutcome:
    domain: str
    findings: List[Finding] = field(default_factory=list)
    pages_crawled: int = 0
    stop_reason: str = STOP_FRONTIER_EXHAUSTED
    status_codes: Dict[int, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def partial(self) -> bool:
        return self.stop_reason in PARTIAL_STOP_REASONS


@dataclass
class VisitResult:
    # 페이지 1건 방문(리다이렉트 포함)의 결과.
    url: str
    findings: List[Finding] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    statuses: List[int] = field(default_factory=list)
    page: Optional[FetchedPage] = None
    fetched: bool = False
    aborted: bool = False
    # 리다이렉트 hop이 페이지 예산에 막혀 중단된 경우.
    budget_exhausted: bool = False


class _CrawlState:
    # 워커(리다이렉트 처리)와 조정 스레드가 함께 쓰는 방문/외부 링크 집합과 페이지 예산.
    def __init__(self, page_budget: Optional[int] = None) -> None:
        self._lock = threading.Lock()
        self._visited: Set[str] = set()
        self._external: Set[str] = set()
        self._page_budget = page_budget
        self._reserved = 0

    def reserve_page(self) -> bool:
        # 서로 다른 URL 하나를 가져올 때마다 예산 1을 쓴다(리다이렉트 hop 포함).
        with self._lock:
            if self._page_budget is not None and self._reserved >= self._page_budget:
                return False
            self._reserved += 1
            return True

    def claim(self, url: str) -> bool:
        with self._lock:
            if url in self._visited:
                return False
            self._visited.add(url)
            return True

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return url in self._visited

    def claim_external(self, url: str) -> bool:
        with self._lock:
            if url in self._external:
                return False
            self._external.add(url)
            return True


class CrawlEngine:
    def __init__(
        self,
        checks: Sequence[BaseCheck],
        fetcher_factory: FetcherFactory,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
        max_redirect_hops: int = MAX_REDIRECT_HOPS,
    ) -> None:
        # 점검 모듈 목록은 실행 시작 시 레지스트리에서 한 번 결정된 것을 받는다.
        self.checks = list(checks)
        self.fetcher_factory = fetcher_factory
        self.clock = clock
        self.sleep = sleep
        self.cancel_event = cancel_event
        self.max_redirect_hops = max_redirect_hops

    def crawl(self, domain: DomainConfig, deadline: Optional[float] = None) -> CrawlOutcome:
        started = self.clock()
        # 도메인 제한 시간과 실행 전체 deadline 중 이른 쪽을 쓴다.
        effective_deadline = started + domain.max_runtime_seconds
        if deadline is not None:
            effective_deadline = min(effective_deadline, deadline)

        outcome = CrawlOutcome(domain=domain.hostname)
        log_event(logger, logging.INFO, "crawl_started", domain=domain.hostname, root=domain.root_url)
        # 수집기는 이 크롤 동안만 소유하며 어떤 종료 경로에서도 닫는다.
        with closing(self.fetcher_factory(domain)) as fetcher:
            outcome.stop_reason = self._traverse(fetcher, domain, effective_deadline, outcome)

        outcome.duration_ms = int((self.clock() - started) * 1000)
        log_event(
            logger,
            logging.INFO,
            "crawl_finished",
            domain=domain.hostname,
            pages=outcome.pages_crawled,
            findings=len(outcome.findings),
            stop_reason=outcome.stop_reason,
            duration_ms=outcome.duration_ms,
        )
        return outcome

    def inspect_route(self, domain: DomainConfig, url: str) -> VisitResult:
        # 검증 엔진용: 단일 route를 한 번만 수집하고 점검한다(링크는 따라가지 않음).
        state = _CrawlState()
        target = normalize_url(url)
        state.claim(target)
        pacer = RatePacer(domain.requests_per_second, self.clock, self.sleep)
        with closing(self.fetcher_factory(domain)) as fetcher:
            result = self._visit(fetcher, domain, pacer, state, target, None)
        # 외부 링크 Finding은 순회 없이도 같은 규칙으로 다시 만든다.
        for link in result.links:
            if not is_crawlable(link):
                continue
            external = normalize_url(link)
            if not same_origin(external, domain.origin) and state.claim_external(external):
                result.findings.append(_external_link_finding(result.url, external))
        return result

    def _traverse(
        self,
        fetcher: PageFetcher,
        domain: DomainConfig,
        deadline: float,
        outcome: CrawlOutcome,
    ) -> str:
        state = _CrawlState(page_budget=domain.crawl_budget_pages)
        pacer = RatePacer(domain.requests_per_second, self.clock, self.sleep)
        statuses: Counter = Counter()
        root = normalize_url(domain.root_url)
        state.claim(root)
        frontier: Deque[Tuple[str, int]] = deque([(root, 0)])
        in_flight: Dict[Future, Tuple[str, int]] = {}
        depth_limited = False
        stop_reason: Optional[str] = None
        workers = max(1, int(domain.concurrency))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"crawl-{domain.hostname}") as pool:
            while frontier or in_flight:
                if stop_reason is None:
                    stop_reason = self._interrupted(deadline)
                # 중단 사유가 생기면 새 fetch를 더 이상 넣지 않는다.
                while stop_reason is None and frontier and len(in_flight) < workers:
                    if not state.reserve_page():
                        stop_reason = STOP_PAGE_BUDGET
                        break
                    url, depth = frontier.popleft()
                    future = pool.submit(self._visit, fetcher, domain, pacer, state, url, deadline)
                    in_flight[future] = (url, depth)
                if not in_flight:
                    break

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    _, depth = in_flight.pop(future)
                    result = future.result()
                    outcome.findings.extend(result.findings)
                    statuses.update(result.statuses)
                    if not result.aborted:
                        outcome.pages_crawled += 1
                    if result.aborted and stop_reason is None:
                        stop_reason = self._interrupted(deadline) or STOP_DEADLINE
                    if result.budget_exhausted and stop_reason is None:
                        stop_reason = STOP_PAGE_BUDGET
                    depth_limited |= self._enqueue_links(
                        domain, state, result, depth, frontier, outcome.findings
                    )

        outcome.status_codes = dict(statuses)
        if stop_reason is not None:
            return stop_reason
        return STOP_DEPTH_BUDGET if depth_limited else STOP_FRONTIER_EXHAUSTED

    def _interrupted(self, deadline: Optional[float]) -> Optional[str]:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return STOP_CANCELLED
        if deadline is not None and self.clock() >= deadline:
            return STOP_DEADLINE
        return None

    def _enqueue_links(
        self,
        domain: DomainConfig,
        state: _CrawlState,
        result: VisitResult,
        depth: int,
        frontier: Deque[Tuple[str, int]],
        findings: List[Finding],
    ) -> bool:
        # 동일 출처 링크는 프런티어에 넣고, 외부 http(s) 링크는 대상별 1회 Finding으로 남긴다.
        depth_limited = False
        for link in result.links:
            if not is_crawlable(link):
                continue
            target = normalize_url(link)
            if not same_origin(target, domain.origin):
                if state.claim_external(target):
                    findings.append(_external_link_finding(result.url, target))
                continue
            if depth + 1 > domain.crawl_budget_depth:
                depth_limited = depth_limited or not state.is_visited(target)
                continue
            if state.claim(target):
                frontier.append((target, depth + 1))
        return depth_limited

    def _visit(
        self,
        fetcher: PageFetcher,
        domain: DomainConfig,
        pacer: RatePacer,
        state: _CrawlState,
        url: str,
        deadline: Optional[float],
    ) -> VisitResult:
        result = VisitResult(url=url)
        current = url
        chain = [url]
        hops = 0
        while True:
            # 리다이렉트 hop도 요청 슬롯을 하나씩 쓴다.
            if not pacer.acquire(deadline, self.cancel_event):
                result.aborted = True
                return result
            try:
                page = fetcher.fetch(current)
            except Exception as exc:
                logger.warning("Fetch failed for %s: %s", current, exc)
                result.findings.append(_fetch_error_finding(current, exc))
                return result
            result.statuses.append(page.status)

            if not page.is_redirect:
                break
            target = resolve(current, page.location)
            if not target or not is_crawlable(target):
                break
            target = normalize_url(target)
            if hops >= self.max_redirect_hops:
                result.findings.append(_redirect_too_long_finding(url, chain + [target]))
                return result
            hops += 1
            if not same_origin(target, domain.origin):
                if state.claim_external(target):
                    result.findings.append(_external_link_finding(current, target))
                return result
            # 리다이렉트 목적지도 같은 방문 집합에 합류한다.
            if not state.claim(target):
                return result
            if not state.reserve_page():
                result.budget_exhausted = True
                return result
            chain.append(target)
            current = target

        result.url = current
        if page.status >= 400 or page.status < 200:
            result.findings.append(_http_error_finding(current, page.status, chain))
            return result
        if not page.ok:
            logger.debug("Skipping %s with status %s", current, page.status)
            return result

        result.fetched = True
        result.page = page
        result.links = list(page.links)
        result.findings.extend(run_checks(self.checks, page, domain))
        return result


def run_checks(checks: Sequence[BaseCheck], page: FetchedPage, domain: DomainConfig) -> List[Finding]:
    # 모듈 하나가 실패해도 나머지 모듈은 계속 실행한다.
    findings: List[Finding] = []
    for check in checks:
        try:
            findings.extend(check.inspect(page, domain) or [])
        except Exception as exc:
            logger.warning("Check %s failed on %s: %s", check.plugin_id, page.url, exc)
            findings.append(_module_failed_finding(check, page.url, exc))
    return findings


def _fetch_error_finding(url: str, exc: Exception) -> Finding:
    return Finding(
        category=Category.LINKS,
        rule_id="page-fetch-error",
        title="페이지 수집 실패",
        message=f"{url} 요청 중 오류가 발생했습니다: {exc}",
        route=url,
        severity_hint=Severity.HIGH,
        evidence=[url],
        payload=FailurePayload(stage="fetch", error=str(exc)),
    )


def _http_error_finding(url: str, status: int, chain: List[str]) -> Finding:
    return Finding(
        category=Category.LINKS,
        rule_id="page-http-error",
        title=f"HTTP 오류 응답 ({status})",
        message=f"{url}이(가) HTTP {status}을(를) 반환했습니다.",
        route=url,
        severity_hint=Severity.HIGH,
        evidence=list(chain),
        payload=LinkPayload(status=status, source_url=chain[0], target_url=url, redirect_chain=tuple(chain)),
    )


def _redirect_too_long_finding(url: str, chain: List[str]) -> Finding:
    return Finding(
        category=Category.LINKS,
        rule_id="redirect-chain-too-long",
        title="리다이렉트 체인이 너무 김",
        message=f"{url}에서 시작한 리다이렉트가 허용 hop 수를 넘었습니다.",
        route=url,
        severity_hint=Severity.MEDIUM,
        evidence=list(chain),
        payload=LinkPayload(source_url=url, target_url=chain[-1], redirect_chain=tuple(chain)),
    )


def _external_link_finding(source: str, target: str) -> Finding:
    # 외부 대상별로 하나의 Issue가 되도록 대상 URL을 서명으로 쓴다.
    return Finding(
        category=Category.LINKS,
        rule_id="external-link",
        title="외부 링크",
        message=f"{source}에서 외부 URL {target}로 연결합니다(순회하지 않음).",
        route=source,
        severity_hint=Severity.LOW,
        evidence=[source, target],
        route_scoped=False,
        signature=target,
        payload=LinkPayload(source_url=source, target_url=target),
    )


def _module_failed_finding(check: BaseCheck, url: str, exc: Exception) -> Finding:
    return Finding(
        category=check.category,
        rule_id="check-module-failed",
        title=f"점검 모듈 실행 실패 ({check.plugin_id})",
        message=f"{check.plugin_id} 모듈이 {url} 점검 중 예외를 발생시켰습니다: {exc}",
        route=url,
        severity_hint=Severity.MEDIUM,
        evidence=[url],
        route_scoped=False,
        signature=check.plugin_id,
        payload=FailurePayload(stage="inspect", error=str(exc), module_id=check.plugin_id),
    )

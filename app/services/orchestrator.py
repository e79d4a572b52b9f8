"""이 파일은 .py 오케스트레이터 서비스 모듈로 감사 실행(도메인 병렬 크롤 → Issue 조립 → 집계) 흐름을 제공합니다."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.base import FetcherFactory
from app.adapters.http import requests_fetcher_factory
from app.core.config import MAX_PARALLEL_DOMAINS, RUN_MAX_RUNTIME_MINUTES
from app.core.logging import log_event
from app.core.plugin_loader import CheckRegistry
from app.core.severity import SeverityTable
from app.core.types import Category, DomainConfig, GoNoGo, RunStatus
from app.db import models

from .aggregator import RunAggregator, empty_counts
from .crawl_engine import CrawlEngine, CrawlOutcome
from .issue_assembler import IssueAssembler
from .issue_store import SqlAlchemyIssueStore
from .trends import average_scores, record_domain_trends

logger = logging.getLogger(__name__)

DOMAIN_COMPLETE = "complete"
DOMAIN_PARTIAL = "partial"
DOMAIN_FAILED = "failed"
DOMAIN_SKIPPED = "skipped"


def new_run_id(prefix: str = "run") -> str:
    # run_<epoch ms>_<8 hex>
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


@dataclass
class DomainRunResult:
    hostname: str
    status: str
    pages_crawled: int = 0
    stop_reason: Optional[str] = None
    counts: Dict[str, int] = field(default_factory=empty_counts)
    risk_score: int = 0
    error: Optional[str] = None


@dataclass
class RunSummary:
    run_id: str
    status: RunStatus
    go_no_go: GoNoGo
    counts: Dict[str, int]
    domains: List[DomainRunResult] = field(default_factory=list)
    total_pages: int = 0
    duration_ms: int = 0


class AuditRunner:
    def __init__(
        self,
        session: Session,
        registry: CheckRegistry,
        fetcher_factory: FetcherFactory = requests_fetcher_factory,
        severity_table: Optional[SeverityTable] = None,
        max_parallel_domains: int = MAX_PARALLEL_DOMAINS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        # Issue 조립/집계/저장은 모두 이 객체를 만든 스레드에서만 수행한다.
        self.session = session
        self.registry = registry
        self.fetcher_factory = fetcher_factory
        self.severity_table = severity_table or SeverityTable.from_default()
        self.max_parallel_domains = max(1, int(max_parallel_domains))
        self.clock = clock
        self.sleep = sleep
        self.cancel_event = cancel_event or threading.Event()
        self.store = SqlAlchemyIssueStore(session)
        self.assembler = IssueAssembler(self.store, self.severity_table)

    def cancel(self) -> None:
        self.cancel_event.set()

    def run(
        self,
        domains: Sequence[DomainConfig],
        categories: Optional[Iterable[Category]] = None,
        max_runtime_minutes: float = RUN_MAX_RUNTIME_MINUTES,
        triggered_by: str = "manual",
        run_id: Optional[str] = None,
    ) -> RunSummary:
        run_id = run_id or new_run_id()
        started = self.clock()
        deadline = started + max_runtime_minutes * 60.0
        # 점검 모듈 목록은 실행 시작 시 한 번만 결정한다.
        selected = list(categories) if categories else None
        checks = self.registry.resolve(selected)
        run_categories = sorted({check.category for check in checks}, key=lambda item: item.value)
        engine = CrawlEngine(
            checks,
            self.fetcher_factory,
            clock=self.clock,
            sleep=self.sleep,
            cancel_event=self.cancel_event,
        )

        run = self._start_run(run_id, domains, run_categories, triggered_by, max_runtime_minutes)
        log_event(logger, logging.INFO, "run_started", run_id=run_id, domains=len(domains), checks=len(checks))
        aggregator = RunAggregator(self.severity_table.yellow_high_threshold)
        results: List[DomainRunResult] = []

        try:
            with ThreadPoolExecutor(max_workers=self.max_parallel_domains, thread_name_prefix="audit-domain") as pool:
                futures = {pool.submit(self._crawl_domain, engine, domain, deadline): domain for domain in domains}
                # 크롤은 워커에서, 조립/저장은 완료되는 순서대로 이 스레드에서 처리한다.
                for future in as_completed(futures):
                    domain = futures[future]
                    try:
                        crawl = future.result()
                    except Exception as exc:
                        logger.exception("Crawl failed for %s", domain.hostname)
                        results.append(self._record_domain_failure(run_id, domain, exc))
                        continue
                    if crawl is None:
                        results.append(self._record_domain_skipped(run_id, domain))
                        continue
                    results.append(self._absorb(run_id, domain, crawl, aggregator, run_categories))

            status = RunStatus.CANCELLED if self.cancel_event.is_set() else RunStatus.COMPLETE
            summary = RunSummary(
                run_id=run_id,
                status=status,
                go_no_go=aggregator.verdict(),
                counts=aggregator.counts(),
                domains=sorted(results, key=lambda item: item.hostname),
                total_pages=sum(item.pages_crawled for item in results),
                duration_ms=int((self.clock() - started) * 1000),
            )
            self._finish_run(run, summary)
        except Exception as exc:
            # 실행 기록 자체가 실패하면 실패 상태로 남기고 예외를 전파한다.
            self.session.rollback()
            run.status = RunStatus.FAILED.value
            run.completed_at = datetime.utcnow()
            run.error = str(exc)
            self.session.commit()
            raise

        log_event(
            logger,
            logging.INFO,
            "run_finished",
            run_id=run_id,
            status=summary.status.value,
            go_no_go=summary.go_no_go.value,
            counts=summary.counts,
            pages=summary.total_pages,
            duration_ms=summary.duration_ms,
        )
        return summary

    def _crawl_domain(self, engine: CrawlEngine, domain: DomainConfig, deadline: float) -> Optional[CrawlOutcome]:
        # 시작 전에 deadline/취소가 발생했으면 건너뛴다.
        if self.cancel_event.is_set() or self.clock() >= deadline:
            return None
        return engine.crawl(domain, deadline=deadline)

    def _absorb(
        self,
        run_id: str,
        domain: DomainConfig,
        crawl: CrawlOutcome,
        aggregator: RunAggregator,
        run_categories: List[Category],
    ) -> DomainRunResult:
        outcomes = self.assembler.assemble(domain.hostname, crawl.findings, run_id)
        aggregator.add(outcomes)
        counts = aggregator.counts(domain.hostname)
        result = DomainRunResult(
            hostname=domain.hostname,
            status=DOMAIN_PARTIAL if crawl.partial else DOMAIN_COMPLETE,
            pages_crawled=crawl.pages_crawled,
            stop_reason=crawl.stop_reason,
            counts=counts,
            risk_score=aggregator.risk_score(domain.hostname),
        )
        # 저장 실패는 기록만 하고 실행은 계속한다. 집계 결과는 메모리에 남아 있다.
        try:
            self.session.add(
                models.DomainResult(
                    run_id=run_id,
                    domain=domain.hostname,
                    tier=domain.tier,
                    status=result.status,
                    pages_crawled=result.pages_crawled,
                    stop_reason=result.stop_reason,
                    duration_ms=crawl.duration_ms,
                    issue_counts=counts,
                    risk_score=result.risk_score,
                    status_codes={str(code): total for code, total in crawl.status_codes.items()},
                )
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to store domain result for %s in %s: %s", domain.hostname, run_id, exc)
        try:
            record_domain_trends(
                self.session,
                run_id=run_id,
                domain=domain.hostname.lower(),
                categories=run_categories,
                category_counts=aggregator.category_counts(domain.hostname),
                pages_crawled=crawl.pages_crawled,
                scores=average_scores(crawl.findings),
                suppressed_counts=aggregator.suppressed_counts(domain.hostname),
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to record trends for %s in %s: %s", domain.hostname, run_id, exc)
        log_event(
            logger,
            logging.INFO,
            "domain_assembled",
            run_id=run_id,
            domain=domain.hostname,
            status=result.status,
            issues=len(outcomes),
            risk_score=result.risk_score,
        )
        return result

    def _record_domain_failure(self, run_id: str, domain: DomainConfig, exc: Exception) -> DomainRunResult:
        result = DomainRunResult(hostname=domain.hostname, status=DOMAIN_FAILED, error=str(exc))
        self.session.add(
            models.DomainResult(
                run_id=run_id,
                domain=domain.hostname,
                tier=domain.tier,
                status=DOMAIN_FAILED,
                issue_counts=empty_counts(),
                error=str(exc),
            )
        )
        self.session.commit()
        return result

    def _record_domain_skipped(self, run_id: str, domain: DomainConfig) -> DomainRunResult:
        logger.info("Skipping %s: run deadline reached or cancelled before start", domain.hostname)
        self.session.add(
            models.DomainResult(
                run_id=run_id,
                domain=domain.hostname,
                tier=domain.tier,
                status=DOMAIN_SKIPPED,
                issue_counts=empty_counts(),
            )
        )
        self.session.commit()
        return DomainRunResult(hostname=domain.hostname, status=DOMAIN_SKIPPED)

    def _start_run(
        self,
        run_id: str,
        domains: Sequence[DomainConfig],
        categories: List[Category],
        triggered_by: str,
        max_runtime_minutes: float,
    ) -> models.AuditRun:
        run = models.AuditRun(
            run_id=run_id,
            status=RunStatus.RUNNING.value,
            started_at=datetime.utcnow(),
            triggered_by=triggered_by,
            total_domains=len(domains),
            summary=empty_counts(),
            config_json={
                "domains": [domain.hostname for domain in domains],
                "categories": [category.value for category in categories],
                "max_runtime_minutes": max_runtime_minutes,
            },
        )
        self.session.add(run)
        self.session.commit()
        return run

    def _finish_run(self, run: models.AuditRun, summary: RunSummary) -> None:
        run.status = summary.status.value
        run.completed_at = datetime.utcnow()
        run.duration_ms = summary.duration_ms
        run.total_pages = summary.total_pages
        run.summary = summary.counts
        run.go_no_go = summary.go_no_go.value
        self.session.commit()

"""이 파일은 .py 검증 엔진 모듈로 fixing 상태 Issue의 route를 재점검해 해결 여부를 판정합니다."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from app.adapters.base import FetcherFactory
from app.adapters.http import requests_fetcher_factory
from app.core.fingerprint import fingerprint_finding
from app.core.logging import log_event
from app.core.plugin_loader import CheckRegistry
from app.core.types import Category, DomainConfig, IssueStatus
from app.db import models

from .crawl_engine import CrawlEngine
from .issue_assembler import AssemblyOutcome, IssueAssembler
from .issue_store import IssueFilter, IssueStore
from .orchestrator import new_run_id

logger = logging.getLogger(__name__)

OUTCOME_VERIFIED = "verified"
OUTCOME_STILL_PRESENT = "still_present"
OUTCOME_INCONCLUSIVE = "inconclusive"

# 수집 결과 자체를 판정하는 규칙. 페이지 본문을 받지 못해도 해결 여부를 판단할 수 있다.
PAGE_LEVEL_RULES = frozenset({"page-http-error", "page-fetch-error", "redirect-chain-too-long"})


@dataclass
class VerificationResult:
    issue_id: int
    fingerprint: str
    outcome: str
    status: IssueStatus
    new_issues: List[AssemblyOutcome] = field(default_factory=list)


class VerificationEngine:
    def __init__(
        self,
        store: IssueStore,
        assembler: IssueAssembler,
        registry: CheckRegistry,
        domains: Optional[Mapping[str, DomainConfig]] = None,
        fetcher_factory: FetcherFactory = requests_fetcher_factory,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.assembler = assembler
        self.registry = registry
        self.domains = {key.lower(): value for key, value in (domains or {}).items()}
        self.fetcher_factory = fetcher_factory
        self.clock = clock
        self.sleep = sleep

    def verify(
        self,
        issues: Optional[Sequence[models.Issue]] = None,
        run_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[VerificationResult]:
        # 대상이 주어지지 않으면 fixing 상태 Issue 전체를 검증한다.
        if issues is None:
            issues = self.store.list_issues(IssueFilter(status=IssueStatus.FIXING))
        if run_id is None:
            run_id = new_run_id("verify")
        results = [self.verify_issue(issue, run_id, now) for issue in issues]
        log_event(
            logger,
            logging.INFO,
            "verification_finished",
            run_id=run_id,
            total=len(results),
            verified=sum(1 for item in results if item.outcome == OUTCOME_VERIFIED),
            still_present=sum(1 for item in results if item.outcome == OUTCOME_STILL_PRESENT),
            inconclusive=sum(1 for item in results if item.outcome == OUTCOME_INCONCLUSIVE),
        )
        return results

    def verify_issue(
        self,
        issue: models.Issue,
        run_id: str,
        now: Optional[datetime] = None,
    ) -> VerificationResult:
        now = now or datetime.utcnow()
        category = Category(issue.category)
        domain = self.domains.get(issue.domain.lower()) or DomainConfig(hostname=issue.domain)
        # 해당 카테고리의 점검 모듈만 해당 route에 다시 실행한다.
        engine = CrawlEngine(
            self.registry.checks_for(category),
            self.fetcher_factory,
            clock=self.clock,
            sleep=self.sleep,
        )
        visit = engine.inspect_route(domain, issue.route or domain.root_url)

        fresh = {fingerprint_finding(issue.domain, finding): finding for finding in visit.findings}
        # 추적되지 않은 새 지문은 일반 조립 경로로 Issue가 된다.
        known = self.store.known_fingerprints(fresh)
        untracked = [finding for fp, finding in fresh.items() if fp not in known and fp != issue.fingerprint]
        new_issues = self.assembler.assemble(issue.domain, untracked, run_id, now) if untracked else []

        if issue.fingerprint in fresh:
            saved = self.store.upsert_issue(
                issue.fingerprint,
                {
                    "status": IssueStatus.OPEN.value,
                    "escalation_requested": True,
                    "updated_at": now,
                },
            )
            outcome = OUTCOME_STILL_PRESENT
        elif visit.aborted or (not visit.fetched and issue.rule_id not in PAGE_LEVEL_RULES):
            # 페이지 자체를 받지 못했으면 판단을 보류하고 fixing을 유지한다.
            logger.warning("Verification inconclusive for %s: page not fetched", issue.fingerprint)
            saved = issue
            outcome = OUTCOME_INCONCLUSIVE
        else:
            saved = self.store.update_status(issue.id, IssueStatus.VERIFIED, now)
            outcome = OUTCOME_VERIFIED

        return VerificationResult(
            issue_id=issue.id,
            fingerprint=issue.fingerprint,
            outcome=outcome,
            status=IssueStatus(saved.status),
            new_issues=new_issues,
        )

"""이 파일은 .py Issue 조립 모듈로 Finding을 지문/심각도로 변환해 Issue 수명 주기를 갱신합니다."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.core.errors import IssueStoreError
from app.core.fingerprint import fingerprint_finding
from app.core.severity import SeverityTable
from app.core.types import Finding, IssueStatus, Severity, payload_to_dict

from .fix_packet import recommended_fix_for
from .issue_store import IssueStore

logger = logging.getLogger(__name__)

# Issue 하나에 보관하는 증거 URL 최대 개수.
MAX_EVIDENCE = 20

ACTION_CREATED = "created"
ACTION_REOPENED = "reopened"
ACTION_UPDATED = "updated"
ACTION_MERGED = "merged"
ACTION_RECORDED = "recorded"


@dataclass(frozen=True)
class AssemblyOutcome:
    fingerprint: str
    issue_id: Optional[int]
    domain: str
    category: str
    action: str
    status: IssueStatus
    severity: Severity


class IssueAssembler:
    def __init__(self, store: IssueStore, severity_table: Optional[SeverityTable] = None) -> None:
        self.store = store
        self.severity_table = severity_table or SeverityTable.from_default()

    def assemble(
        self,
        domain: str,
        findings: Iterable[Finding],
        run_id: str,
        now: Optional[datetime] = None,
    ) -> List[AssemblyOutcome]:
        now = now or datetime.utcnow()
        outcomes: List[AssemblyOutcome] = []
        for finding in findings:
            # 저장 실패는 Finding 단위로 기록하고 다음 Finding을 계속 처리한다.
            try:
                outcomes.append(self.assemble_one(domain, finding, run_id, now))
            except IssueStoreError as exc:
                logger.error("Failed to store finding %s on %s: %s", finding.rule_key, finding.route, exc)
        return outcomes

    def assemble_one(
        self,
        domain: str,
        finding: Finding,
        run_id: str,
        now: Optional[datetime] = None,
    ) -> AssemblyOutcome:
        now = now or datetime.utcnow()
        domain = domain.lower()
        fingerprint = fingerprint_finding(domain, finding)
        severity = self.severity_table.classify(
            finding.category,
            finding.rule_key,
            metric=finding.metric,
            default=finding.severity_hint,
        )
        issue = self.store.get_issue(fingerprint)

        # 1) 처음 보는 지문이거나 검증 완료 후 재발한 경우: 새 수명 주기를 시작한다.
        if issue is None or issue.status == IssueStatus.VERIFIED.value:
            status = IssueStatus.OPEN
            if self.store.active_suppression(fingerprint, now) is not None:
                status = IssueStatus.SUPPRESSED
            fresh = self._fresh_fields(domain, finding, severity, status, run_id, now)
            if issue is None:
                fresh["created_at"] = now
            action = ACTION_CREATED if issue is None else ACTION_REOPENED
            saved = self.store.upsert_issue(fingerprint, fresh)
            return self._outcome(saved, fingerprint, action)

        current = IssueStatus(issue.status)
        fields: Dict[str, Any] = {"updated_at": now}
        seen_this_run = issue.last_seen_run_id == run_id

        # 2) 미해결 Issue: 실행당 한 번만 카운트하고 심각도는 올라가기만 한다.
        if current in (IssueStatus.OPEN, IssueStatus.FIXING):
            if not seen_this_run:
                fields["occurrence_count"] = (issue.occurrence_count or 0) + 1
                fields["last_seen_run_id"] = run_id
            if severity.rank > Severity.parse(issue.severity).rank:
                fields["severity"] = severity.value
            fields["evidence"] = _merge_evidence(issue.evidence, finding.evidence)
            action = ACTION_MERGED if seen_this_run else ACTION_UPDATED
            saved = self.store.upsert_issue(fingerprint, fields)
            return self._outcome(saved, fingerprint, action)

        # 3) 억제가 만료/비활성화된 suppressed Issue는 다시 연다.
        if current == IssueStatus.SUPPRESSED and self.store.active_suppression(fingerprint, now) is None:
            fields["status"] = IssueStatus.OPEN.value
            if not seen_this_run:
                fields["occurrence_count"] = (issue.occurrence_count or 0) + 1
            fields["last_seen_run_id"] = run_id
            if severity.rank > Severity.parse(issue.severity).rank:
                fields["severity"] = severity.value
            fields["evidence"] = _merge_evidence(issue.evidence, finding.evidence)
            saved = self.store.upsert_issue(fingerprint, fields)
            return self._outcome(saved, fingerprint, ACTION_REOPENED)

        # 4) suppressed/wontfix: 추세 집계를 위해 관측 사실만 남긴다.
        fields["last_seen_run_id"] = run_id
        saved = self.store.upsert_issue(fingerprint, fields)
        return self._outcome(saved, fingerprint, ACTION_RECORDED)

    def _fresh_fields(
        self,
        domain: str,
        finding: Finding,
        severity: Severity,
        status: IssueStatus,
        run_id: str,
        now: datetime,
    ) -> Dict[str, Any]:
        return {
            "domain": domain,
            "category": finding.category.value,
            "severity": severity.value,
            "rule_id": finding.rule_id,
            "signature": finding.signature,
            "title": finding.title,
            "description": finding.message,
            "route": finding.route,
            "evidence": _merge_evidence([], finding.evidence),
            "payload": payload_to_dict(finding.payload),
            "recommended_fix": recommended_fix_for(finding.category, finding.rule_id),
            "auto_fixable": bool(finding.auto_fixable),
            "status": status.value,
            "occurrence_count": 1,
            "first_seen_run_id": run_id,
            "last_seen_run_id": run_id,
            "escalation_requested": False,
            "verified_at": None,
            "updated_at": now,
        }

    @staticmethod
    def _outcome(issue, fingerprint: str, action: str) -> AssemblyOutcome:
        return AssemblyOutcome(
            fingerprint=fingerprint,
            issue_id=issue.id,
            domain=issue.domain,
            category=issue.category,
            action=action,
            status=IssueStatus(issue.status),
            severity=Severity.parse(issue.severity),
        )


def _merge_evidence(existing: Optional[List[str]], incoming: Iterable[str]) -> List[str]:
    # 순서를 유지하며 중복을 없애고 최대 개수로 자른다.
    merged: List[str] = []
    for url in list(existing or []) + list(incoming or []):
        if url and url not in merged:
            merged.append(url)
    return merged[:MAX_EVIDENCE]

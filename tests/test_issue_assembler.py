"""이 파일은 .py 테스트 모듈로 Issue 조립기의 생성, 중복 제거, 심각도 상향, 억제/재발 수명 주기를 검증합니다."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from app.core.errors import IssueStoreError
from app.core.fingerprint import fingerprint_finding
from app.core.severity import SeverityTable
from app.core.types import Category, Finding, IssueStatus, MetricPayload, Severity
from app.services.issue_assembler import IssueAssembler
from app.services.issue_store import SqlAlchemyIssueStore

NOW = datetime(2026, 3, 1, 12, 0, 0)
ROUTE = "https://example.test/pricing"


def _title_missing(evidence=None) -> Finding:
    return Finding(
        category=Category.SEO,
        rule_id="seo-title-missing",
        title="title 태그 누락",
        message="missing title",
        route=ROUTE,
        evidence=list(evidence or [ROUTE]),
    )


def _perf(score: float) -> Finding:
    return Finding(
        category=Category.PERF,
        rule_id="lighthouse-performance",
        title="성능 점수 낮음",
        message=f"score {score}",
        route=ROUTE,
        severity_hint=Severity.MEDIUM,
        payload=MetricPayload(metric="performance", score=score),
    )


def _assembler(db_session):
    store = SqlAlchemyIssueStore(db_session)
    return store, IssueAssembler(store, SeverityTable.from_default())


def test_new_finding_creates_open_issue(db_session) -> None:
    store, assembler = _assembler(db_session)
    [outcome] = assembler.assemble("Example.test", [_title_missing()], "run_1", NOW)

    issue = store.get_issue(outcome.fingerprint)
    assert outcome.action == "created"
    assert outcome.fingerprint == fingerprint_finding("example.test", _title_missing())
    assert issue.status == IssueStatus.OPEN.value
    assert issue.severity == Severity.BLOCKER.value
    assert issue.domain == "example.test"
    assert issue.route == ROUTE
    assert issue.occurrence_count == 1
    assert issue.first_seen_run_id == issue.last_seen_run_id == "run_1"
    assert issue.recommended_fix
    assert issue.payload == {}


def test_same_run_observations_merge_without_double_count(db_session) -> None:
    store, assembler = _assembler(db_session)
    assembler.assemble("example.test", [_title_missing()], "run_1", NOW)
    [outcome] = assembler.assemble(
        "example.test", [_title_missing(["https://example.test/other"])], "run_1", NOW
    )

    issue = store.get_issue(outcome.fingerprint)
    assert outcome.action == "merged"
    assert issue.occurrence_count == 1
    assert issue.evidence == [ROUTE, "https://example.test/other"]
    assert len(store.list_issues()) == 1


def test_each_later_run_counts_once(db_session) -> None:
    store, assembler = _assembler(db_session)
    assembler.assemble("example.test", [_title_missing()], "run_1", NOW)
    assembler.assemble("example.test", [_title_missing(), _title_missing()], "run_2", NOW)
    [outcome] = assembler.assemble("example.test", [_title_missing()], "run_3", NOW)

    issue = store.get_issue(outcome.fingerprint)
    assert issue.occurrence_count == 3
    assert issue.first_seen_run_id == "run_1"
    assert issue.last_seen_run_id == "run_3"


def test_open_issue_severity_only_escalates(db_session) -> None:
    store, assembler = _assembler(db_session)
    [first] = assembler.assemble("example.test", [_perf(50)], "run_1", NOW)
    assert first.severity == Severity.MEDIUM

    [second] = assembler.assemble("example.test", [_perf(10)], "run_2", NOW)
    assert second.severity == Severity.BLOCKER

    [third] = assembler.assemble("example.test", [_perf(80)], "run_3", NOW)
    assert third.severity == Severity.BLOCKER
    assert store.get_issue(third.fingerprint).payload["score"] == 50


def test_verified_issue_reopens_with_fresh_lifecycle(db_session) -> None:
    store, assembler = _assembler(db_session)
    [created] = assembler.assemble("example.test", [_perf(10)], "run_1", NOW)
    assembler.assemble("example.test", [_perf(10)], "run_2", NOW)
    store.update_status(created.issue_id, IssueStatus.VERIFIED, NOW)

    [reopened] = assembler.assemble("example.test", [_perf(50)], "run_3", NOW)

    issue = store.get_issue(reopened.fingerprint)
    assert reopened.action == "reopened"
    assert reopened.issue_id == created.issue_id
    assert issue.status == IssueStatus.OPEN.value
    assert issue.occurrence_count == 1
    assert issue.first_seen_run_id == "run_3"
    assert issue.severity == Severity.MEDIUM.value
    assert issue.verified_at is None


def test_active_suppression_applies_at_creation(db_session) -> None:
    store, assembler = _assembler(db_session)
    fingerprint = fingerprint_finding("example.test", _title_missing())
    store.add_suppression(fingerprint, reason="marketing page, accepted")

    [outcome] = assembler.assemble("example.test", [_title_missing()], "run_1", NOW)

    assert outcome.status == IssueStatus.SUPPRESSED
    assert store.get_issue(fingerprint).status == IssueStatus.SUPPRESSED.value


def test_suppression_moves_open_issue_and_expiry_reopens(db_session) -> None:
    store, assembler = _assembler(db_session)
    [created] = assembler.assemble("example.test", [_title_missing()], "run_1", NOW)
    store.add_suppression(created.fingerprint, reason="temporary", expires_at=NOW + timedelta(days=1))
    assert store.get_issue(created.fingerprint).status == IssueStatus.SUPPRESSED.value

    [still] = assembler.assemble("example.test", [_title_missing()], "run_2", NOW + timedelta(hours=1))
    assert still.action == "recorded"
    assert still.status == IssueStatus.SUPPRESSED

    [reopened] = assembler.assemble("example.test", [_title_missing()], "run_3", NOW + timedelta(days=2))
    issue = store.get_issue(created.fingerprint)
    assert reopened.action == "reopened"
    assert issue.status == IssueStatus.OPEN.value
    assert issue.last_seen_run_id == "run_3"
    assert issue.occurrence_count == 2


def test_wontfix_is_recorded_but_never_reopened(db_session) -> None:
    store, assembler = _assembler(db_session)
    [created] = assembler.assemble("example.test", [_title_missing()], "run_1", NOW)
    store.update_status(created.issue_id, IssueStatus.WONTFIX, NOW)

    [outcome] = assembler.assemble("example.test", [_title_missing()], "run_2", NOW)

    issue = store.get_issue(created.fingerprint)
    assert outcome.action == "recorded"
    assert issue.status == IssueStatus.WONTFIX.value
    assert issue.last_seen_run_id == "run_2"
    assert issue.occurrence_count == 1


def test_store_failure_skips_only_that_finding(db_session) -> None:
    class FlakyStore(SqlAlchemyIssueStore):
        def __init__(self, session) -> None:
            super().__init__(session)
            self.calls = 0

        def upsert_issue(self, fingerprint, fields):
            self.calls += 1
            if self.calls == 1:
                raise IssueStoreError("database is locked")
            return super().upsert_issue(fingerprint, fields)

    store = FlakyStore(db_session)
    assembler = IssueAssembler(store, SeverityTable.from_default())

    outcomes = assembler.assemble("example.test", [_title_missing(), _perf(10)], "run_1", NOW)

    assert [item.category for item in outcomes] == ["PERF"]
    assert len(store.list_issues()) == 1


def test_suppression_lookup_failure_is_logged_not_raised(db_session, caplog) -> None:
    store, assembler = _assembler(db_session)
    db_session.execute(text("DROP TABLE audit_suppressions"))
    db_session.commit()

    outcomes = assembler.assemble("example.test", [_title_missing()], "run_1", NOW)

    assert outcomes == []
    assert "Failed to store finding" in caplog.text
    with pytest.raises(IssueStoreError):
        store.active_suppression("abc", NOW)


def test_fingerprint_lookup_failure_raises_store_error(db_session) -> None:
    store, _ = _assembler(db_session)
    db_session.execute(text("DROP TABLE audit_issues"))
    db_session.commit()

    with pytest.raises(IssueStoreError):
        store.known_fingerprints(["abc"])
    with pytest.raises(IssueStoreError):
        store.list_issues()

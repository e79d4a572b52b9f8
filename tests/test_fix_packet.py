"""이 파일은 .py 테스트 모듈로 수정 패킷의 대상 선정, 정렬, 파일 저장을 검증합니다."""

import json
from datetime import datetime

import pytest

from app.core.fingerprint import fingerprint_finding
from app.core.severity import SeverityTable
from app.core.types import Category, Finding, MetricPayload, Severity
from app.db import models
from app.services.fix_packet import build_fix_packet, render_narrative, save_fix_packet, select_packet_issues
from app.services.issue_assembler import IssueAssembler
from app.services.issue_store import SqlAlchemyIssueStore

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _finding(rule_id: str, category: Category, route: str, auto_fixable: bool = False, score=None) -> Finding:
    return Finding(
        category=category,
        rule_id=rule_id,
        title=f"{rule_id} on {route}",
        message=f"{rule_id} detected",
        route=route,
        auto_fixable=auto_fixable,
        payload=MetricPayload(metric="performance", score=score) if score is not None else None,
    )


@pytest.fixture
def seeded(db_session):
    store = SqlAlchemyIssueStore(db_session)
    assembler = IssueAssembler(store, SeverityTable.from_default())
    db_session.add(models.AuditRun(run_id="run_1", status="complete"))
    db_session.commit()

    assembler.assemble("example.test", [_finding("seo-title-long", Category.SEO, "https://example.test/old")], "run_0", NOW)
    assembler.assemble(
        "example.test",
        [
            _finding("lighthouse-performance", Category.PERF, "https://example.test/", score=50),
            _finding("seo-title-missing", Category.SEO, "https://example.test/", auto_fixable=True),
            _finding("seo-lang-missing", Category.SEO, "https://example.test/muted", auto_fixable=True),
        ],
        "run_1",
        NOW,
    )
    muted = fingerprint_finding("example.test", _finding("seo-lang-missing", Category.SEO, "https://example.test/muted"))
    store.add_suppression(muted, reason="legacy page")
    return db_session


def test_packet_selects_open_issues_seen_in_run(seeded) -> None:
    issues = select_packet_issues(seeded, "run_1")
    assert sorted(issue.rule_id for issue in issues) == ["lighthouse-performance", "seo-title-missing"]


def test_min_severity_filters_packet(seeded) -> None:
    issues = select_packet_issues(seeded, "run_1", Severity.HIGH)
    assert [issue.rule_id for issue in issues] == ["seo-title-missing"]


def test_packet_orders_by_severity_and_summarizes(seeded) -> None:
    packet = build_fix_packet("run_1", select_packet_issues(seeded, "run_1"), NOW)

    assert packet["runId"] == "run_1"
    assert packet["generatedAt"] == NOW.isoformat()
    assert [item["severity"] for item in packet["issues"]] == ["BLOCKER", "MEDIUM"]
    assert packet["summary"] == {"BLOCKER": 1, "HIGH": 0, "MEDIUM": 1, "LOW": 0, "autoFixable": 1}
    first = packet["issues"][0]
    assert first["autoFixable"] is True
    assert first["recommendedFix"]
    assert first["acceptanceCriteria"]
    assert any(first["fingerprint"] in step for step in first["verification"])


def test_narrative_renders_groups() -> None:
    packet = build_fix_packet("run_9", [], NOW)
    narrative = render_narrative(packet)
    assert narrative.startswith("# Fix Packet")
    assert "| BLOCKER | 0 |" in narrative
    assert "## BLOCKER" not in narrative


def test_save_writes_files_and_record(seeded, tmp_path) -> None:
    record = save_fix_packet(seeded, "run_1", base_dir=tmp_path)

    assert record.issue_count == 2
    saved = json.loads((tmp_path / "run_1" / "fix-packet.json").read_text(encoding="utf-8"))
    assert saved["runId"] == "run_1"
    assert len(saved["issues"]) == 2
    markdown = (tmp_path / "run_1" / "fix-packet.md").read_text(encoding="utf-8")
    assert "## BLOCKER (1)" in markdown
    assert seeded.query(models.FixPacketRecord).count() == 1


def test_unknown_run_raises_key_error(db_session, tmp_path) -> None:
    with pytest.raises(KeyError):
        save_fix_packet(db_session, "run_missing", base_dir=tmp_path)

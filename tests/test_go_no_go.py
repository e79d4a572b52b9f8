"""이 파일은 .py 테스트 모듈로 go/no-go 판정, 위험 점수, 실행 집계를 검증합니다."""

from app.core.types import GoNoGo, IssueStatus, Severity
from app.services.aggregator import RunAggregator, empty_counts, go_no_go, risk_score
from app.services.issue_assembler import AssemblyOutcome


def _outcome(fingerprint: str, severity: Severity, status: IssueStatus = IssueStatus.OPEN, domain: str = "a.test"):
    return AssemblyOutcome(
        fingerprint=fingerprint,
        issue_id=None,
        domain=domain,
        category="SEO",
        action="created",
        status=status,
        severity=severity,
    )


def test_any_blocker_is_red() -> None:
    counts = {**empty_counts(), "BLOCKER": 1}
    assert go_no_go(counts) == GoNoGo.RED


def test_high_count_above_threshold_is_yellow() -> None:
    assert go_no_go({**empty_counts(), "HIGH": 10}) == GoNoGo.GREEN
    assert go_no_go({**empty_counts(), "HIGH": 11}) == GoNoGo.YELLOW
    assert go_no_go({**empty_counts(), "HIGH": 3}, yellow_high_threshold=2) == GoNoGo.YELLOW


def test_only_medium_and_low_is_green() -> None:
    assert go_no_go({**empty_counts(), "MEDIUM": 40, "LOW": 100}) == GoNoGo.GREEN


def test_risk_score_weights() -> None:
    counts = {"BLOCKER": 1, "HIGH": 2, "MEDIUM": 3, "LOW": 4}
    assert risk_score(counts) == 100 + 50 + 15 + 4
    assert risk_score(empty_counts()) == 0


def test_aggregator_counts_latest_open_outcome_per_fingerprint() -> None:
    aggregator = RunAggregator()
    aggregator.add(
        [
            _outcome("f1", Severity.HIGH),
            _outcome("f1", Severity.BLOCKER),
            _outcome("f2", Severity.MEDIUM, status=IssueStatus.SUPPRESSED),
            _outcome("f3", Severity.LOW, status=IssueStatus.WONTFIX),
            _outcome("f4", Severity.HIGH, domain="b.test"),
        ]
    )
    assert len(aggregator) == 4
    assert aggregator.counts() == {"BLOCKER": 1, "HIGH": 1, "MEDIUM": 0, "LOW": 0}
    assert aggregator.counts("a.test") == {"BLOCKER": 1, "HIGH": 0, "MEDIUM": 0, "LOW": 0}
    assert aggregator.category_counts("b.test") == {"SEO": {"BLOCKER": 0, "HIGH": 1, "MEDIUM": 0, "LOW": 0}}
    assert aggregator.verdict() == GoNoGo.RED
    assert aggregator.risk_score("b.test") == 25

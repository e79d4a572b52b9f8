"""이 파일은 .py 실행 집계 모듈로 심각도 카운트, 위험 점수, go/no-go 판정을 제공합니다."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from app.core.severity import DEFAULT_YELLOW_HIGH_THRESHOLD
from app.core.types import GoNoGo, IssueStatus, Severity

# 도메인 위험 점수 가중치.
RISK_WEIGHTS = {
    Severity.BLOCKER: 100,
    Severity.HIGH: 25,
    Severity.MEDIUM: 5,
    Severity.LOW: 1,
}
COUNTED_STATUSES = {IssueStatus.OPEN, IssueStatus.FIXING}
MUTED_STATUSES = {IssueStatus.SUPPRESSED, IssueStatus.WONTFIX}


def empty_counts() -> Dict[str, int]:
    return {severity.value: 0 for severity in Severity.ordered()}


def go_no_go(counts: Mapping[str, int], yellow_high_threshold: int = DEFAULT_YELLOW_HIGH_THRESHOLD) -> GoNoGo:
    # BLOCKER가 하나라도 있으면 RED, HIGH가 기준값을 "초과"하면 YELLOW.
    if counts.get(Severity.BLOCKER.value, 0) > 0:
        return GoNoGo.RED
    if counts.get(Severity.HIGH.value, 0) > yellow_high_threshold:
        return GoNoGo.YELLOW
    return GoNoGo.GREEN


def risk_score(counts: Mapping[str, int]) -> int:
    return sum(weight * int(counts.get(severity.value, 0)) for severity, weight in RISK_WEIGHTS.items())


class RunAggregator:
    """조립 결과를 모아 실행/도메인 단위 카운트를 계산한다.

    같은 지문이 여러 번 관측되면 마지막 결과(가장 최신 상태/심각도)만 센다.
    open/fixing 상태의 Issue만 카운트에 포함한다.
    """

    def __init__(self, yellow_high_threshold: int = DEFAULT_YELLOW_HIGH_THRESHOLD) -> None:
        self.yellow_high_threshold = yellow_high_threshold
        self._latest: Dict[str, object] = {}

    def add(self, outcomes: Iterable) -> None:
        for outcome in outcomes:
            self._latest[outcome.fingerprint] = outcome

    def counts(self, domain: Optional[str] = None) -> Dict[str, int]:
        counts = empty_counts()
        for outcome in self._latest.values():
            if domain is not None and outcome.domain != domain.lower():
                continue
            if outcome.status in COUNTED_STATUSES:
                counts[outcome.severity.value] += 1
        return counts

    def category_counts(self, domain: str) -> Dict[str, Dict[str, int]]:
        # 추세 롤업용: 카테고리별 심각도 카운트.
        result: Dict[str, Dict[str, int]] = {}
        for outcome in self._latest.values():
            if outcome.domain != domain.lower() or outcome.status not in COUNTED_STATUSES:
                continue
            bucket = result.setdefault(outcome.category, empty_counts())
            bucket[outcome.severity.value] += 1
        return result

    def suppressed_counts(self, domain: str) -> Dict[str, int]:
        # suppressed/wontfix로 관측된 Issue는 심각도 카운트 대신 카테고리별 개수로만 남긴다.
        result: Dict[str, int] = {}
        for outcome in self._latest.values():
            if outcome.domain != domain.lower() or outcome.status not in MUTED_STATUSES:
                continue
            result[outcome.category] = result.get(outcome.category, 0) + 1
        return result

    def verdict(self) -> GoNoGo:
        return go_no_go(self.counts(), self.yellow_high_threshold)

    def risk_score(self, domain: Optional[str] = None) -> int:
        return risk_score(self.counts(domain))

    def __len__(self) -> int:
        return len(self._latest)

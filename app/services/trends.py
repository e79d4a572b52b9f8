"""이 파일은 .py 추세 모듈로 (도메인, 카테고리, 날짜) 단위 일별 스냅샷을 기록합니다."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.types import Category, Finding, Severity
from app.db import models


def average_scores(findings: Iterable[Finding]) -> Dict[str, float]:
    # 점수를 보고하는 카테고리(PERF/A11Y 등)만 평균을 낸다.
    buckets: Dict[str, List[float]] = defaultdict(list)
    for finding in findings:
        if finding.metric is not None:
            buckets[finding.category.value].append(float(finding.metric))
    return {category: round(sum(values) / len(values), 2) for category, values in buckets.items()}


def upsert_trend(
    session: Session,
    domain: str,
    category: str,
    day: date,
    run_id: str,
    counts: Mapping[str, int],
    pages_crawled: int,
    avg_score: Optional[float] = None,
    suppressed: int = 0,
) -> models.Trend:
    # 같은 날짜 행은 최신 실행 값으로 덮어쓰고, 지난 날짜 행은 건드리지 않는다.
    row = (
        session.query(models.Trend)
        .filter(
            models.Trend.domain == domain,
            models.Trend.category == category,
            models.Trend.date == day,
        )
        .one_or_none()
    )
    if row is None:
        row = models.Trend(domain=domain, category=category, date=day)
        session.add(row)
    row.run_id = run_id
    row.blocker_count = int(counts.get(Severity.BLOCKER.value, 0))
    row.high_count = int(counts.get(Severity.HIGH.value, 0))
    row.medium_count = int(counts.get(Severity.MEDIUM.value, 0))
    row.low_count = int(counts.get(Severity.LOW.value, 0))
    row.total_issues = row.blocker_count + row.high_count + row.medium_count + row.low_count
    row.suppressed_count = int(suppressed)
    row.pages_crawled = pages_crawled
    row.avg_score = avg_score
    row.updated_at = datetime.utcnow()
    return row


def record_domain_trends(
    session: Session,
    run_id: str,
    domain: str,
    categories: Iterable[Category],
    category_counts: Mapping[str, Mapping[str, int]],
    pages_crawled: int,
    scores: Optional[Mapping[str, float]] = None,
    day: Optional[date] = None,
    suppressed_counts: Optional[Mapping[str, int]] = None,
) -> List[models.Trend]:
    day = day or datetime.utcnow().date()
    scores = scores or {}
    suppressed_counts = suppressed_counts or {}
    # 이번 실행에서 점검한 카테고리와 Issue가 관측된 카테고리 모두 행을 남긴다.
    names = sorted({Category(item).value for item in categories} | set(category_counts) | set(suppressed_counts))
    rows = [
        upsert_trend(
            session,
            domain=domain,
            category=name,
            day=day,
            run_id=run_id,
            counts=category_counts.get(name, {}),
            pages_crawled=pages_crawled,
            avg_score=scores.get(name),
            suppressed=suppressed_counts.get(name, 0),
        )
        for name in names
    ]
    session.commit()
    return rows

"""이 파일은 .py 지문 모듈로 Finding을 실행 간 안정적인 Issue 식별자로 변환합니다."""

from __future__ import annotations

import hashlib
from typing import Optional, Tuple

from .types import Category, Finding
from .urls import route_of

FIELD_SEPARATOR = "|"


def fingerprint_inputs(
    domain: str,
    category: Category,
    rule_key: str,
    route: Optional[str] = None,
) -> Tuple[str, str, str, str]:
    # 해시 입력을 정규화된 튜플로 만든다. route가 없으면 빈 문자열이다.
    normalized_route = route_of(route) if route else ""
    return (
        domain.strip().lower(),
        Category(category).value,
        rule_key.strip(),
        normalized_route,
    )


def compute_fingerprint(
    domain: str,
    category: Category,
    rule_key: str,
    route: Optional[str] = None,
) -> str:
    material = FIELD_SEPARATOR.join(fingerprint_inputs(domain, category, rule_key, route))
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def fingerprint_finding(domain: str, finding: Finding) -> str:
    # route 단위 규칙만 route를 해시에 포함한다.
    route = finding.route if finding.route_scoped else None
    return compute_fingerprint(domain, finding.category, finding.rule_key, route)

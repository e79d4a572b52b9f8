"""이 파일은 .py 점검 모듈 베이스로 Finding 생성 공통 로직을 제공합니다."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config_validation import apply_config_schema
from .types import (
    AuditPayload,
    Category,
    DomainConfig,
    FetchedPage,
    Finding,
    FindingPayload,
    MetricPayload,
    Severity,
)


class BaseCheck(ABC):
    # plugin.yml에서 선언된 값이 로더에 의해 주입된다.
    plugin_id: str = ""
    category: Category = Category.SEO
    auto_fixable: bool = False
    route_scoped: bool = True

    def __init__(
        self,
        plugin_id: str,
        category: Category,
        auto_fixable: bool = False,
        route_scoped: bool = True,
        config: Optional[Dict] = None,
        config_schema: Optional[Dict] = None,
    ) -> None:
        self.plugin_id = plugin_id
        self.category = Category(category)
        self.auto_fixable = auto_fixable
        self.route_scoped = route_scoped
        self.config = dict(config or {})
        self.config_schema = config_schema

    @abstractmethod
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        raise NotImplementedError

    def config_for(self, domain: DomainConfig) -> Dict:
        # 실행 설정 위에 도메인별 설정을 덮어쓰고 스키마로 다시 검증한다.
        merged = {**self.config, **dict(domain.check_config.get(self.plugin_id, {}) or {})}
        return apply_config_schema(self.config_schema, merged)

    def finding(
        self,
        rule_id: str,
        title: str,
        message: str,
        page: FetchedPage,
        severity_hint: Optional[Severity] = None,
        payload: Optional[FindingPayload] = None,
        signature: Optional[str] = None,
        auto_fixable: Optional[bool] = None,
        evidence: Optional[List[str]] = None,
    ) -> Finding:
        # 모듈 선언값(category/auto_fixable/route_scoped)을 기본으로 채운다.
        return Finding(
            category=self.category,
            rule_id=rule_id,
            title=title,
            message=message,
            route=page.url,
            severity_hint=severity_hint,
            evidence=list(evidence) if evidence is not None else [page.url],
            auto_fixable=self.auto_fixable if auto_fixable is None else auto_fixable,
            route_scoped=self.route_scoped,
            signature=signature,
            payload=payload,
        )


class MetricThresholdCheck(BaseCheck):
    """외부 성능 감사기가 page.metrics에 넣어 준 점수를 임계값과 비교하는 공통 점검.

    AUDITS에 선언된 개별 감사는 page.audits의 0~1 점수가 audit_fail_below 미만일 때
    ``lighthouse-<감사 ID>`` 규칙으로 따로 보고한다.
    """

    # (metric 키, rule_id, 표시 이름)
    METRICS: Sequence[Tuple[str, str, str]] = ()
    # (감사 ID, 표시 이름, 자동 수정 가능 여부)
    AUDITS: Sequence[Tuple[str, str, bool]] = ()

    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        config = self.config_for(domain)
        report_below = float(config.get("report_below", 90))
        findings: List[Finding] = []
        for metric, rule_id, label in self.METRICS:
            score = _score(page.metrics, metric)
            # 점수가 없으면 점검할 것이 없다.
            if score is None or score >= report_below:
                continue
            findings.append(
                self.finding(
                    rule_id=rule_id,
                    title=f"{label} 점수 낮음 ({score:.0f}/100)",
                    message=f"{page.url}의 {label} 점수가 {score:.0f}점으로 기준({report_below:.0f}) 미만입니다.",
                    page=page,
                    severity_hint=Severity.MEDIUM,
                    payload=MetricPayload(metric=metric, score=score),
                )
            )
        findings.extend(self._failing_audits(page, float(config.get("audit_fail_below", 0.5))))
        return findings

    def _failing_audits(self, page: FetchedPage, fail_below: float) -> List[Finding]:
        findings: List[Finding] = []
        for audit_id, label, auto_fixable in self.AUDITS:
            score = _score(page.audits, audit_id)
            if score is None or score >= fail_below:
                continue
            findings.append(
                self.finding(
                    rule_id=f"lighthouse-{audit_id}",
                    title=f"Lighthouse 감사 실패: {label}",
                    message=f"{page.url}의 '{audit_id}' 감사 점수가 {score:.2f}로 기준({fail_below:.2f}) 미만입니다.",
                    page=page,
                    severity_hint=Severity.MEDIUM,
                    payload=AuditPayload(audit_id=audit_id, score=score),
                    auto_fixable=auto_fixable,
                )
            )
        return findings


def _score(metrics: Mapping[str, float], key: str) -> Optional[float]:
    value = metrics.get(key) if metrics else None
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

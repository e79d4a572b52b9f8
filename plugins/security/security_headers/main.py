"""이 파일은 .py 보안 헤더 플러그인 모듈로 응답 헤더의 누락과 취약한 값을 검사합니다."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from app.core.plugin_base import BaseCheck
from app.core.types import DomainConfig, FetchedPage, Finding, HeaderPayload, Severity


@dataclass(frozen=True)
class HeaderRule:
    header: str
    label: str
    severity: Severity
    recommended: str
    auto_fixable: bool
    purpose: str


REQUIRED_HEADERS = (
    HeaderRule("strict-transport-security", "Strict-Transport-Security (HSTS)", Severity.HIGH,
               "max-age=31536000; includeSubDomains; preload", True, "HTTPS 연결을 강제합니다"),
    HeaderRule("x-content-type-options", "X-Content-Type-Options", Severity.MEDIUM,
               "nosniff", True, "MIME 스니핑을 막습니다"),
    HeaderRule("x-frame-options", "X-Frame-Options", Severity.MEDIUM,
               "DENY", True, "클릭재킹을 막습니다"),
    HeaderRule("x-xss-protection", "X-XSS-Protection", Severity.LOW,
               "1; mode=block", True, "브라우저 XSS 필터를 켭니다"),
    HeaderRule("referrer-policy", "Referrer-Policy", Severity.LOW,
               "strict-origin-when-cross-origin", True, "리퍼러 노출 범위를 제한합니다"),
    HeaderRule("content-security-policy", "Content-Security-Policy", Severity.HIGH,
               "default-src 'self'", False, "XSS와 데이터 주입을 막습니다"),
    HeaderRule("permissions-policy", "Permissions-Policy", Severity.LOW,
               "geolocation=(), microphone=(), camera=()", True, "브라우저 기능 사용을 제한합니다"),
)

_MAX_AGE = re.compile(r"max-age=(\d+)", re.IGNORECASE)


class SecurityHeadersCheck(BaseCheck):
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        config = self.config_for(domain)
        findings: List[Finding] = []
        failing = 0
        for rule in REQUIRED_HEADERS:
            value = page.header(rule.header)
            if not value:
                failing += 1
                findings.append(self._header_finding(rule, "missing", page, None))
            elif _is_weak(rule.header, value, config["hsts_min_max_age"]):
                failing += 1
                findings.append(self._header_finding(rule, "weak", page, value))

        # 정상 헤더 비율로 점수를 내고 기준 미만이면 요약 Finding을 추가한다.
        score = round((len(REQUIRED_HEADERS) - failing) / len(REQUIRED_HEADERS) * 100)
        if score < config["critical_score_below"]:
            findings.append(
                self.finding(
                    rule_id="security-headers-critical",
                    title=f"보안 헤더 심각 부족 (점수 {score}/100)",
                    message=f"필수 보안 헤더 {len(REQUIRED_HEADERS)}개 중 {failing}개가 없거나 취약합니다.",
                    page=page,
                    severity_hint=Severity.BLOCKER,
                    payload=HeaderPayload(header="*", observed=str(score)),
                )
            )
        return findings

    def _header_finding(self, rule: HeaderRule, kind: str, page: FetchedPage, observed: Optional[str]) -> Finding:
        if kind == "missing":
            title = f"보안 헤더 누락: {rule.label}"
            message = f"{rule.label} 헤더가 설정되지 않았습니다. 이 헤더는 {rule.purpose}."
        else:
            title = f"취약한 보안 헤더 값: {rule.label}"
            message = f"{rule.label} 헤더 값 \"{observed}\"이(가) 취약합니다. 이 헤더는 {rule.purpose}."
        return self.finding(
            rule_id=f"security-header-{rule.header}-{kind}",
            title=title,
            message=message,
            page=page,
            severity_hint=rule.severity,
            auto_fixable=rule.auto_fixable,
            payload=HeaderPayload(header=rule.header, observed=observed, recommended=rule.recommended),
        )


def _is_weak(header: str, value: str, hsts_min_max_age: int) -> bool:
    if header == "strict-transport-security":
        match = _MAX_AGE.search(value)
        return match is None or int(match.group(1)) < hsts_min_max_age
    if header == "x-frame-options":
        return value.strip().lower() == "allowall"
    if header == "content-security-policy":
        return "'unsafe-inline'" in value or "'unsafe-eval'" in value
    return False

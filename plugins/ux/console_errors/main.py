"""이 파일은 .py 콘솔 오류 플러그인 모듈로 치명적인 JavaScript 런타임 오류를 Finding으로 만듭니다."""

from __future__ import annotations

from typing import List

from app.core.plugin_base import BaseCheck
from app.core.types import DomainConfig, FetchedPage, Finding, MarkupPayload, Severity


class ConsoleErrorCheck(BaseCheck):
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        # 렌더러가 콘솔 로그를 주지 않으면 점검할 것이 없다.
        if not page.console_errors:
            return []
        patterns = self.config_for(domain).get("critical_patterns") or []
        critical = [error for error in page.console_errors if any(pattern in error for pattern in patterns)]
        if not critical:
            return []
        return [
            self.finding(
                rule_id="console-critical-error",
                title=f"치명적 콘솔 오류 {len(critical)}건",
                message=f"{page.url} 로딩 중 런타임 오류가 발생했습니다: {critical[0][:200]}",
                page=page,
                severity_hint=Severity.HIGH,
                payload=MarkupPayload(element="console", observed=critical[0][:500]),
            )
        ]

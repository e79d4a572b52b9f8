"""이 파일은 .py 접근 제어 플러그인 모듈로 보호 경로에 대한 무인증 접근을 점검합니다."""

from __future__ import annotations

from typing import List
from urllib.parse import urlsplit

from app.core.plugin_base import BaseCheck
from app.core.types import AccessPayload, DomainConfig, FetchedPage, Finding, Severity


class AccessControlCheck(BaseCheck):
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        config = self.config_for(domain)
        # 보호 경로가 설정되지 않은 도메인은 점검하지 않는다.
        protected = [path.rstrip("/") or "/" for path in config.get("protected_paths") or []]
        if not protected or not page.ok:
            return []
        path = urlsplit(page.url).path or "/"
        matched = next((prefix for prefix in protected if _under(path, prefix)), None)
        if matched is None:
            return []
        # 로그인 폼을 보여 주는 응답은 정상적인 인증 유도로 본다.
        if any(marker in (page.html or "") for marker in config.get("login_markers") or []):
            return []
        return [
            self.finding(
                rule_id="access-control-unauthenticated",
                title="보호 경로에 대한 무인증 접근",
                message=f"보호 경로 {matched} 아래의 {path}이(가) 인증 없이 HTTP {page.status}로 응답했습니다.",
                page=page,
                severity_hint=Severity.HIGH,
                signature=matched,
                payload=AccessPayload(path=path, status=page.status),
            )
        ]


def _under(path: str, prefix: str) -> bool:
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")

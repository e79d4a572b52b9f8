"""이 파일은 .py 링크 점검 플러그인 모듈로 페이지 내 앵커 태그의 href 품질을 검사합니다."""

from __future__ import annotations

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from app.core.plugin_base import BaseCheck
from app.core.types import DomainConfig, FetchedPage, Finding, LinkPayload, Severity


class LinkIntegrityCheck(BaseCheck):
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        if not page.html:
            return []
        config = self.config_for(domain)
        max_evidence = int(config.get("max_evidence", 10))
        soup = BeautifulSoup(page.html, "html.parser")

        empty: List[str] = []
        scripted: List[str] = []
        insecure: List[str] = []
        for anchor in soup.find_all("a"):
            href = anchor.get("href")
            if href is None:
                continue
            value = href.strip()
            # 빈 값과 "#"만 있는 링크는 이동 대상이 없다.
            if value in ("", "#"):
                empty.append(anchor.get_text(strip=True) or "(no text)")
            elif value.lower().startswith("javascript:"):
                scripted.append(value)
            elif value.lower().startswith("http://"):
                insecure.append(urljoin(page.url, value))

        findings: List[Finding] = []
        if empty:
            findings.append(
                self.finding(
                    rule_id="link-empty-href",
                    title=f"빈 링크 {len(empty)}개",
                    message=f"{page.url}에 href가 비어 있거나 '#'인 링크가 {len(empty)}개 있습니다.",
                    page=page,
                    severity_hint=Severity.LOW,
                    payload=LinkPayload(source_url=page.url),
                )
            )
        if scripted:
            findings.append(
                self.finding(
                    rule_id="link-javascript-href",
                    title=f"javascript: 링크 {len(scripted)}개",
                    message=f"{page.url}에 javascript: href를 쓰는 링크가 {len(scripted)}개 있습니다. button 요소로 바꾸세요.",
                    page=page,
                    severity_hint=Severity.LOW,
                    payload=LinkPayload(source_url=page.url),
                )
            )
        # HTTPS 페이지에서 HTTP로 연결하는 링크만 문제로 본다.
        if insecure and config.get("check_insecure_links", True) and page.url.startswith("https://"):
            findings.append(
                self.finding(
                    rule_id="link-insecure-target",
                    title=f"HTTP 링크 {len(insecure)}개",
                    message=f"HTTPS 페이지 {page.url}에서 암호화되지 않은 HTTP URL로 연결합니다.",
                    page=page,
                    severity_hint=Severity.MEDIUM,
                    payload=LinkPayload(source_url=page.url, target_url=insecure[0]),
                    evidence=[page.url] + insecure[: max_evidence - 1],
                )
            )
        return findings

"""이 파일은 .py SEO 메타 플러그인 모듈로 검색 노출에 필요한 head 태그와 본문 구조를 검사합니다."""

from __future__ import annotations

from typing import List, Optional

from bs4 import BeautifulSoup

from app.core.plugin_base import BaseCheck
from app.core.types import DomainConfig, FetchedPage, Finding, MarkupPayload, Severity

# 규칙별 기본 심각도. 최종 값은 심각도 테이블이 결정한다.
SEVERITY_HINTS = {
    "seo-title-missing": Severity.BLOCKER,
    "seo-title-short": Severity.BLOCKER,
    "seo-title-long": Severity.LOW,
    "seo-description-missing": Severity.HIGH,
    "seo-description-short": Severity.MEDIUM,
    "seo-canonical-missing": Severity.MEDIUM,
    "seo-og-missing": Severity.MEDIUM,
    "seo-twitter-missing": Severity.LOW,
    "seo-viewport-missing": Severity.BLOCKER,
    "seo-lang-missing": Severity.LOW,
    "seo-h1-missing": Severity.HIGH,
    "seo-h1-multiple": Severity.MEDIUM,
    "seo-img-alt-missing": Severity.MEDIUM,
}


class SeoMetaCheck(BaseCheck):
    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        if not page.html:
            return []
        config = self.config_for(domain)
        soup = BeautifulSoup(page.html, "html.parser")
        findings: List[Finding] = []

        def add(rule_id: str, title: str, message: str, element: str, observed: Optional[str] = None) -> None:
            findings.append(
                self.finding(
                    rule_id=rule_id,
                    title=title,
                    message=message,
                    page=page,
                    severity_hint=SEVERITY_HINTS.get(rule_id),
                    payload=MarkupPayload(element=element, observed=observed),
                )
            )

        # 1) title: 없거나 짧으면 BLOCKER, 길면 LOW
        title = soup.title.get_text(strip=True) if soup.title else ""
        title_min, title_max = config["title_min_length"], config["title_max_length"]
        if not title:
            add("seo-title-missing", "title 태그 누락", f"{page.url}에 <title>이 없습니다.", "title")
        elif len(title) < title_min:
            add(
                "seo-title-short",
                "title이 너무 짧음",
                f"title이 {len(title)}자입니다(권장 {title_min}~{title_max}자).",
                "title",
                title,
            )
        elif len(title) > title_max:
            add(
                "seo-title-long",
                "title이 너무 김",
                f"title이 {len(title)}자입니다(권장 {title_max}자 이하).",
                "title",
                title,
            )

        # 2) meta description
        description = _meta_content(soup, "description")
        if not description:
            add(
                "seo-description-missing",
                "meta description 누락",
                f"{page.url}에 meta description이 없습니다.",
                "meta[name=description]",
            )
        elif len(description) < config["description_min_length"]:
            add(
                "seo-description-short",
                "meta description이 너무 짧음",
                f"description이 {len(description)}자입니다(권장 {config['description_min_length']}자 이상).",
                "meta[name=description]",
                description,
            )

        # 3) canonical
        if soup.find("link", rel="canonical") is None:
            add(
                "seo-canonical-missing",
                "canonical URL 누락",
                "중복 콘텐츠 판정을 피하려면 canonical 링크가 필요합니다.",
                "link[rel=canonical]",
            )

        # 4) Open Graph: 필수 태그 중 빠진 것을 한 Finding으로 모은다.
        present = {tag.get("property") for tag in soup.find_all("meta", attrs={"property": True})}
        missing_og = [tag for tag in config["required_og_tags"] if tag not in present]
        if missing_og:
            add(
                "seo-og-missing",
                "Open Graph 태그 누락",
                f"누락된 Open Graph 태그: {', '.join(missing_og)}",
                "meta[property^=og:]",
                ",".join(missing_og),
            )

        # 5) Twitter card, viewport, lang
        if not _meta_content(soup, "twitter:card"):
            add("seo-twitter-missing", "Twitter card 누락", "twitter:card 메타 태그가 없습니다.", "meta[name=twitter:card]")
        if not _meta_content(soup, "viewport"):
            add(
                "seo-viewport-missing",
                "viewport 메타 태그 누락",
                "모바일 렌더링을 위한 viewport 메타 태그가 없습니다.",
                "meta[name=viewport]",
            )
        html_tag = soup.find("html")
        if html_tag is None or not (html_tag.get("lang") or "").strip():
            add(
                "seo-lang-missing",
                "html lang 속성 누락",
                "검색엔진과 스크린 리더를 위해 lang 속성이 필요합니다.",
                "html[lang]",
            )

        # 6) H1은 정확히 하나
        h1_count = len(soup.find_all("h1"))
        if h1_count == 0:
            add("seo-h1-missing", "H1 제목 누락", "페이지에 H1 제목이 없습니다.", "h1", "0")
        elif h1_count > 1:
            add("seo-h1-multiple", f"H1 제목 {h1_count}개", "페이지당 H1은 하나만 두는 것을 권장합니다.", "h1", str(h1_count))

        # 7) alt 없는 이미지
        without_alt = [img for img in soup.find_all("img") if not (img.get("alt") or "").strip()]
        if without_alt:
            add(
                "seo-img-alt-missing",
                f"alt 없는 이미지 {len(without_alt)}개",
                "모든 이미지에 설명용 alt 텍스트가 필요합니다.",
                "img[alt]",
                str(len(without_alt)),
            )
        return findings


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find("meta", attrs={"name": name})
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()

"""이 파일은 .py SEO 점수 플러그인 모듈로 Lighthouse SEO 점수와 SEO 관련 감사를 검사합니다."""

from app.core.plugin_base import MetricThresholdCheck


class LighthouseSeoCheck(MetricThresholdCheck):
    METRICS = (("seo", "lighthouse-seo", "SEO"),)
    AUDITS = (
        ("document-title", "문서 제목", True),
        ("meta-description", "메타 설명", True),
        ("viewport", "뷰포트 메타 태그", True),
    )

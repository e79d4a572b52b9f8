"""이 파일은 .py 접근성 점수 플러그인 모듈로 Lighthouse 접근성 점수와 주요 접근성 감사를 검사합니다."""

from app.core.plugin_base import MetricThresholdCheck


class LighthouseAccessibilityCheck(MetricThresholdCheck):
    METRICS = (("accessibility", "lighthouse-accessibility", "접근성"),)
    AUDITS = (
        ("image-alt", "이미지 대체 텍스트", True),
        ("button-name", "버튼 접근 가능한 이름", False),
        ("link-name", "링크 접근 가능한 이름", False),
    )

"""이 파일은 .py 성능 점수 플러그인 모듈로 Lighthouse 성능/권장사항 점수와 핵심 성능 감사를 검사합니다."""

from app.core.plugin_base import MetricThresholdCheck


class LighthousePerformanceCheck(MetricThresholdCheck):
    METRICS = (
        ("performance", "lighthouse-performance", "성능"),
        ("best-practices", "lighthouse-best-practices", "권장사항"),
    )
    AUDITS = (
        ("first-contentful-paint", "First Contentful Paint", False),
        ("largest-contentful-paint", "Largest Contentful Paint", False),
        ("cumulative-layout-shift", "Cumulative Layout Shift", False),
        ("total-blocking-time", "Total Blocking Time", False),
    )

"""이 파일은 .py 수정 패킷 모듈로 미해결 Issue를 구조화된 작업 패킷(JSON/Markdown)으로 만듭니다."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.storage import ensure_reports_dir
from app.core.types import Category, IssueStatus, Severity
from app.db import models

logger = logging.getLogger(__name__)

# 카테고리별 기본 조치 방법. 규칙별 문구가 있으면 그것을 우선한다.
REMEDIATION_TEMPLATES: Dict[Category, str] = {
    Category.LINKS: "깨진 링크의 대상 URL을 수정하거나 제거하고, 이동된 페이지는 단일 301 리다이렉트로 연결합니다.",
    Category.SEO: "페이지 <head>에 누락된 메타 태그를 추가하고 값의 길이를 권장 범위로 맞춥니다.",
    Category.SECURITY: "웹 서버 또는 CDN 응답 헤더 설정에 권장 보안 헤더 값을 추가합니다.",
    Category.PERF: "Lighthouse 진단 항목(렌더 차단 리소스, 이미지 최적화, JS 크기)을 순서대로 개선합니다.",
    Category.A11Y: "WCAG 2.1 AA 기준에 맞게 대체 텍스트, 레이블, 색 대비를 보완합니다.",
    Category.API: "API 응답 코드와 스키마를 문서화된 계약과 일치시킵니다.",
    Category.AUTH: "보호 경로에 인증 미들웨어를 적용하고 비로그인 요청은 로그인 페이지로 리다이렉트합니다.",
    Category.UX: "브라우저 콘솔 오류의 원인 스크립트를 수정하고 예외 처리를 추가합니다.",
}

RULE_REMEDIATIONS: Dict[str, str] = {
    "seo-title-missing": "<title> 태그를 10~60자 길이로 추가합니다.",
    "seo-title-short": "<title>을 페이지 내용을 설명하는 10~60자 문장으로 늘립니다.",
    "seo-title-long": "<title>을 60자 이하로 줄입니다.",
    "seo-description-missing": '<meta name="description" content="..."> 를 50~160자로 추가합니다.',
    "seo-description-short": "meta description을 50자 이상으로 보강합니다.",
    "seo-canonical-missing": '<link rel="canonical" href="..."> 를 추가합니다.',
    "seo-viewport-missing": '<meta name="viewport" content="width=device-width, initial-scale=1"> 를 추가합니다.',
    "seo-lang-missing": '<html lang="ko"> 처럼 문서 언어를 지정합니다.',
    "page-fetch-error": "대상 서버의 가용성과 DNS/TLS 설정을 확인합니다.",
    "page-http-error": "오류 응답을 반환하는 경로를 복구하거나 링크를 제거합니다.",
    "redirect-chain-too-long": "중간 리다이렉트를 제거하고 최종 목적지로 바로 연결합니다.",
    "check-module-failed": "점검 모듈 로그를 확인하고 페이지 구조 변경 여부를 점검합니다.",
}

ACCEPTANCE_TEMPLATES: Dict[Category, List[str]] = {
    Category.SEO: ["메타 태그가 존재하고 형식이 올바르다", "Lighthouse SEO 경고가 없다"],
    Category.SECURITY: ["보안 헤더가 응답에 포함된다", "헤더 값이 권장 설정과 일치한다"],
    Category.A11Y: ["대상 요소가 WCAG 2.1 AA를 충족한다", "스크린 리더로 읽을 수 있다"],
    Category.PERF: ["Lighthouse 성능 점수가 개선된다", "Core Web Vitals 기준을 통과한다"],
    Category.LINKS: ["모든 링크가 2xx 또는 3xx를 반환한다", "크롤 결과에 404가 없다"],
}
DEFAULT_ACCEPTANCE = ["재감사에서 Issue가 더 이상 검출되지 않는다"]


def recommended_fix_for(category: Category, rule_id: str) -> str:
    return RULE_REMEDIATIONS.get(rule_id) or REMEDIATION_TEMPLATES.get(Category(category), "")


def acceptance_criteria_for(category: Category) -> List[str]:
    try:
        return list(ACCEPTANCE_TEMPLATES.get(Category(category), DEFAULT_ACCEPTANCE))
    except ValueError:
        return list(DEFAULT_ACCEPTANCE)


def verification_steps_for(issue: models.Issue) -> List[str]:
    return [
        f"{issue.route or '대상 페이지'}에 대해 재감사를 실행한다",
        f"지문 {issue.fingerprint}이(가) 더 이상 검출되지 않는지 확인한다",
        "새로운 Issue가 생기지 않았는지 확인한다",
    ]


def select_packet_issues(
    session: Session,
    run_id: str,
    min_severity: Optional[Severity] = None,
) -> List[models.Issue]:
    # 이번 실행에서 관측된 open Issue만 대상이다(suppressed/wontfix 제외).
    query = session.query(models.Issue).filter(
        models.Issue.last_seen_run_id == run_id,
        models.Issue.status == IssueStatus.OPEN.value,
    )
    if min_severity is not None:
        floor = Severity.parse(min_severity).rank
        allowed = [severity.value for severity in Severity.ordered() if severity.rank >= floor]
        query = query.filter(models.Issue.severity.in_(allowed))
    return query.all()


def build_fix_packet(
    run_id: str,
    issues: Iterable[models.Issue],
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    # 심각도 순서(BLOCKER 먼저)로 정렬하고 요약 카운트를 만든다.
    generated_at = generated_at or datetime.utcnow()
    ordered = sorted(
        issues,
        key=lambda item: (-Severity.parse(item.severity).rank, item.category, item.route or "", item.fingerprint),
    )
    summary = {severity.value: 0 for severity in Severity.ordered()}
    summary["autoFixable"] = 0
    for issue in ordered:
        summary[Severity.parse(issue.severity).value] += 1
        if issue.auto_fixable:
            summary["autoFixable"] += 1

    return {
        "runId": run_id,
        "generatedAt": generated_at.isoformat(),
        "summary": summary,
        "issues": [_issue_entry(issue) for issue in ordered],
    }


def render_narrative(packet: Dict[str, Any]) -> str:
    # Markdown은 패킷 내용만으로 렌더링한다.
    lines: List[str] = [
        "# Fix Packet",
        f"- Run: {packet['runId']}",
        f"- Generated: {packet['generatedAt']}",
        "",
        "| Severity | Count |",
        "|----------|-------|",
    ]
    summary = packet["summary"]
    for severity in Severity.ordered():
        lines.append(f"| {severity.value} | {summary.get(severity.value, 0)} |")
    lines.append(f"| Auto-fixable | {summary.get('autoFixable', 0)} |")
    lines.append("")

    for severity in Severity.ordered():
        group = [item for item in packet["issues"] if item["severity"] == severity.value]
        if not group:
            continue
        lines.append(f"## {severity.value} ({len(group)})")
        lines.append("")
        for item in group:
            lines.append(f"### {item['title']}")
            lines.append(f"- Fingerprint: `{item['fingerprint']}`")
            lines.append(f"- Category: {item['category']}")
            lines.append(f"- Domain: {item['domain']}")
            lines.append(f"- Route: {item['route'] or 'N/A'}")
            lines.append(f"- Auto-fixable: {'yes' if item['autoFixable'] else 'no'}")
            lines.append("")
            lines.append(item["description"] or "")
            lines.append("")
            if item["recommendedFix"]:
                lines.append("**Recommended fix**")
                lines.append("")
                lines.append(item["recommendedFix"])
                lines.append("")
            lines.append("**Acceptance criteria**")
            lines.extend(f"- [ ] {criterion}" for criterion in item["acceptanceCriteria"])
            lines.append("")
            lines.append("**Verification**")
            lines.extend(f"{index}. {step}" for index, step in enumerate(item["verification"], start=1))
            lines.append("")
    return "\n".join(lines)


def save_fix_packet(
    session: Session,
    run_id: str,
    min_severity: Optional[Severity] = None,
    base_dir: Optional[Path] = None,
) -> models.FixPacketRecord:
    run = session.query(models.AuditRun).filter(models.AuditRun.run_id == run_id).one_or_none()
    if run is None:
        raise KeyError("Run not found")

    issues = select_packet_issues(session, run_id, min_severity)
    packet = build_fix_packet(run_id, issues)
    narrative = render_narrative(packet)

    # 실행별 디렉터리에 JSON/Markdown 파일을 쓴다.
    report_dir = ensure_reports_dir(run_id, base_dir)
    json_path = report_dir / "fix-packet.json"
    markdown_path = report_dir / "fix-packet.md"
    json_path.write_text(json.dumps(packet, ensure_ascii=False, indent=2), encoding="utf-8")
    markdown_path.write_text(narrative, encoding="utf-8")

    record = models.FixPacketRecord(
        run_id=run_id,
        packet=packet,
        narrative=narrative,
        issue_count=len(packet["issues"]),
        json_path=str(json_path),
        markdown_path=str(markdown_path),
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info("Fix packet for %s written with %d issues", run_id, record.issue_count)
    return record


def _issue_entry(issue: models.Issue) -> Dict[str, Any]:
    return {
        "fingerprint": issue.fingerprint,
        "severity": issue.severity,
        "category": issue.category,
        "domain": issue.domain,
        "route": issue.route,
        "title": issue.title,
        "description": issue.description,
        "evidence": list(issue.evidence or []),
        "autoFixable": bool(issue.auto_fixable),
        "recommendedFix": issue.recommended_fix or recommended_fix_for(issue.category, issue.rule_id),
        "acceptanceCriteria": acceptance_criteria_for(issue.category),
        "verification": verification_steps_for(issue),
    }

"""이 파일은 .py API 스키마 모듈로 요청/응답 모델을 정의합니다."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.types import Category, IssueStatus, Severity


class RunCreate(BaseModel):
    # 감사 실행 요청. domains가 비어 있으면 설정 파일의 enabled 도메인 전체를 대상으로 한다.
    domains: List[str] = Field(default_factory=list)
    tier: Optional[str] = None
    # 실행할 점검 카테고리. 비어 있으면 등록된 전체 카테고리.
    categories: List[Category] = Field(default_factory=list)
    # plugin_id -> 실행 단위 설정
    check_config: Dict[str, Dict] = Field(default_factory=dict)
    max_runtime_minutes: float = Field(default=60, gt=0)
    triggered_by: str = "api"


class DomainResultResponse(BaseModel):
    domain: str
    tier: Optional[str] = None
    status: str
    pages_crawled: int = 0
    stop_reason: Optional[str] = None
    duration_ms: Optional[int] = None
    issue_counts: Dict[str, int] = Field(default_factory=dict)
    risk_score: int = 0
    status_codes: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RunResponse(BaseModel):
    run_id: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    triggered_by: Optional[str] = None
    total_domains: int = 0
    total_pages: int = 0
    summary: Dict[str, int] = Field(default_factory=dict)
    go_no_go: Optional[str] = None
    error: Optional[str] = None
    domain_results: List[DomainResultResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class IssueResponse(BaseModel):
    id: int
    fingerprint: str
    domain: str
    category: str
    severity: str
    rule_id: str
    signature: Optional[str] = None
    title: str
    description: Optional[str] = None
    route: Optional[str] = None
    evidence: List[str] = Field(default_factory=list)
    payload: Dict = Field(default_factory=dict)
    recommended_fix: Optional[str] = None
    auto_fixable: bool = False
    status: str
    occurrence_count: int = 1
    first_seen_run_id: Optional[str] = None
    last_seen_run_id: Optional[str] = None
    escalation_requested: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class IssueStatusUpdate(BaseModel):
    status: IssueStatus


class SuppressionCreate(BaseModel):
    fingerprint: str = Field(..., min_length=64, max_length=64)
    reason: str = Field(..., min_length=1)
    created_by: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("fingerprint")
    @classmethod
    def validate_fingerprint(cls, value: str) -> str:
        # 지문은 SHA-256 16진 문자열이다.
        lowered = value.lower()
        if any(char not in "0123456789abcdef" for char in lowered):
            raise ValueError("fingerprint must be a hex SHA-256 digest")
        return lowered


class SuppressionResponse(BaseModel):
    id: int
    fingerprint: str
    reason: str
    created_by: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FixPacketCreate(BaseModel):
    # 이 심각도 이상만 패킷에 포함한다.
    min_severity: Optional[Severity] = None


class FixPacketResponse(BaseModel):
    id: int
    run_id: str
    issue_count: int
    packet: Dict
    narrative: Optional[str] = None
    json_path: Optional[str] = None
    markdown_path: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class VerificationCreate(BaseModel):
    # 비어 있으면 fixing 상태 Issue 전체를 검증한다.
    issue_ids: List[int] = Field(default_factory=list)


class VerificationResponse(BaseModel):
    issue_id: int
    fingerprint: str
    outcome: str
    status: IssueStatus
    new_issue_fingerprints: List[str] = Field(default_factory=list)


class CheckResponse(BaseModel):
    plugin_id: str
    name: str
    version: str
    category: Category
    order: int
    auto_fixable: bool
    route_scoped: bool
    description: Optional[str] = None

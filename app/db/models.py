"""이 파일은 .py DB 모델 정의 모듈로 실행/도메인 결과/Issue/억제/추세/수정 패킷을 제공합니다."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base


class AuditRun(Base):
    __tablename__ = "audit_runs"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, default="running")
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    triggered_by = Column(String, default="manual")
    total_domains = Column(Integer, default=0)
    total_pages = Column(Integer, default=0)
    # {BLOCKER, HIGH, MEDIUM, LOW}
    summary = Column(JSON, default=dict)
    go_no_go = Column(String, nullable=True)
    config_json = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    domain_results = relationship("DomainResult", back_populates="run")
    fix_packets = relationship("FixPacketRecord", back_populates="run")


class DomainResult(Base):
    __tablename__ = "audit_results"
    __table_args__ = (UniqueConstraint("run_id", "domain", name="uq_audit_results_run_domain"),)

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String, ForeignKey("audit_runs.run_id"), index=True, nullable=False)
    domain = Column(String, index=True, nullable=False)
    tier = Column(String, nullable=True)
    status = Column(String, default="complete")
    pages_crawled = Column(Integer, default=0)
    stop_reason = Column(String, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    issue_counts = Column(JSON, default=dict)
    risk_score = Column(Integer, default=0)
    status_codes = Column(JSON, default=dict)
    error = Column(Text, nullable=True)

    run = relationship("AuditRun", back_populates="domain_results")


class Issue(Base):
    __tablename__ = "audit_issues"

    id = Column(Integer, primary_key=True, index=True)
    fingerprint = Column(String(64), unique=True, index=True, nullable=False)
    domain = Column(String, index=True, nullable=False)
    category = Column(String, index=True, nullable=False)
    severity = Column(String, index=True, nullable=False)
    rule_id = Column(String, nullable=False)
    signature = Column(String, nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    route = Column(String, nullable=True)
    evidence = Column(JSON, default=list)
    payload = Column(JSON, default=dict)
    recommended_fix = Column(Text, nullable=True)
    auto_fixable = Column(Boolean, default=False)
    status = Column(String, index=True, default="open")
    occurrence_count = Column(Integer, default=1)
    first_seen_run_id = Column(String, nullable=True)
    last_seen_run_id = Column(String, index=True, nullable=True)
    escalation_requested = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)
    verified_at = Column(DateTime, nullable=True)


class Suppression(Base):
    __tablename__ = "audit_suppressions"

    id = Column(Integer, primary_key=True, index=True)
    fingerprint = Column(String(64), unique=True, index=True, nullable=False)
    reason = Column(Text, nullable=False)
    created_by = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def is_effective(self, now: datetime) -> bool:
        return bool(self.is_active) and (self.expires_at is None or self.expires_at > now)


class Trend(Base):
    __tablename__ = "audit_trends"
    __table_args__ = (
        UniqueConstraint("domain", "category", "date", name="uq_audit_trends_domain_category_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String, index=True, nullable=False)
    category = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    run_id = Column(String, nullable=True)
    blocker_count = Column(Integer, default=0)
    high_count = Column(Integer, default=0)
    medium_count = Column(Integer, default=0)
    low_count = Column(Integer, default=0)
    total_issues = Column(Integer, default=0)
    # suppressed/wontfix 상태로 관측된 Issue 수(심각도 카운트와 별도).
    suppressed_count = Column(Integer, default=0)
    pages_crawled = Column(Integer, default=0)
    avg_score = Column(Float, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow)


class FixPacketRecord(Base):
    __tablename__ = "audit_fix_packets"

    id = Column(Integer, primary_key=True)
    run_id = Column(String, ForeignKey("audit_runs.run_id"), index=True)
    packet = Column(JSON, nullable=False)
    narrative = Column(Text, nullable=True)
    issue_count = Column(Integer, default=0)
    json_path = Column(String, nullable=True)
    markdown_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    run = relationship("AuditRun", back_populates="fix_packets")

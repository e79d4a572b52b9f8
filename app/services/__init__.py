"""이 파일은 .py 서비스 패키지 초기화 모듈로 핵심 서비스를 노출합니다."""

from .aggregator import RunAggregator, go_no_go, risk_score
from .crawl_engine import CrawlEngine, CrawlOutcome
from .fix_packet import build_fix_packet, render_narrative, save_fix_packet
from .issue_assembler import AssemblyOutcome, IssueAssembler
from .issue_store import IssueFilter, IssueStore, SqlAlchemyIssueStore
from .orchestrator import AuditRunner, RunSummary, new_run_id
from .rate_pacer import RatePacer
from .verification import VerificationEngine, VerificationResult

__all__ = [
    "AssemblyOutcome",
    "AuditRunner",
    "CrawlEngine",
    "CrawlOutcome",
    "IssueAssembler",
    "IssueFilter",
    "IssueStore",
    "RatePacer",
    "RunAggregator",
    "RunSummary",
    "SqlAlchemyIssueStore",
    "VerificationEngine",
    "VerificationResult",
    "build_fix_packet",
    "go_no_go",
    "new_run_id",
    "render_narrative",
    "risk_score",
    "save_fix_packet",
]

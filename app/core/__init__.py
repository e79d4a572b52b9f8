"""이 파일은 .py 코어 패키지 초기화 모듈로 주요 심볼을 재노출합니다."""

from .config import DEFAULT_SEVERITY_RULES_FILE, PLUGINS_DIR
from .fingerprint import compute_fingerprint, fingerprint_finding
from .logging import log_event, setup_logging
from .plugin_base import BaseCheck
from .plugin_loader import CheckRegistry, PluginLoader
from .severity import SeverityTable
from .types import Category, DomainConfig, FetchedPage, Finding, IssueStatus, Severity

__all__ = [
    "BaseCheck",
    "Category",
    "CheckRegistry",
    "DEFAULT_SEVERITY_RULES_FILE",
    "DomainConfig",
    "FetchedPage",
    "Finding",
    "IssueStatus",
    "PLUGINS_DIR",
    "PluginLoader",
    "Severity",
    "SeverityTable",
    "compute_fingerprint",
    "fingerprint_finding",
    "log_event",
    "setup_logging",
]

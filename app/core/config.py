"""이 파일은 .py 설정 모듈로 경로, 환경 변수, 크롤 기본값을 정의합니다."""

import os
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
APP_DIR = REPO_ROOT / "app"
PLUGINS_DIR = REPO_ROOT / "plugins"
DATA_DIR = APP_DIR / "data"
DEFAULT_SEVERITY_RULES_FILE = Path(
    os.getenv("AUDITOPS_SEVERITY_RULES", str(DATA_DIR / "severity_rules.yml"))
)
DEFAULT_DOMAINS_FILE = Path(os.getenv("AUDITOPS_DOMAINS_FILE", str(DATA_DIR / "domains.yml")))
STORAGE_DIR = REPO_ROOT / "storage"
REPORTS_DIR = STORAGE_DIR / "reports"
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{(STORAGE_DIR / 'site_auditops.db').as_posix()}",
)
API_PREFIX = "/api/v1"

# 페이지 수집기 기본값(요청 헤더/타임아웃).
USER_AGENT = os.getenv("AUDITOPS_USER_AGENT", "SiteAuditOpsBot/1.0")
FETCH_TIMEOUT_SECONDS = float(os.getenv("AUDITOPS_FETCH_TIMEOUT", "30"))

# 리다이렉트는 최대 3 hop까지만 따라간다.
MAX_REDIRECT_HOPS = 3

# 오케스트레이터 전역 워커 수와 실행 전체 제한 시간(분).
MAX_PARALLEL_DOMAINS = int(os.getenv("AUDITOPS_MAX_PARALLEL_DOMAINS", "2"))
RUN_MAX_RUNTIME_MINUTES = float(os.getenv("AUDITOPS_RUN_MAX_RUNTIME_MINUTES", "60"))

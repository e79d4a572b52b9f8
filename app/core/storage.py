"""이 파일은 .py 저장 경로 모듈로 실행별 산출물(수정 패킷) 디렉터리를 관리합니다."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from .config import REPORTS_DIR

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


def ensure_reports_dir(run_id: str, base_dir: Optional[Path] = None) -> Path:
    # run_id를 파일시스템 안전한 이름으로 바꾼 뒤 디렉터리를 생성한다.
    path = Path(base_dir or REPORTS_DIR) / _SAFE_NAME.sub("_", run_id)
    path.mkdir(parents=True, exist_ok=True)
    return path

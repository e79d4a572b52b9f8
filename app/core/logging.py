"""이 파일은 .py 로깅 초기화 모듈로 기본 로그 포맷과 구조화 이벤트 로그를 제공합니다."""

import json
import logging
from typing import Any


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    # 크롤/실행 단계 이벤트를 한 줄 JSON으로 남긴다.
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True, ensure_ascii=False))

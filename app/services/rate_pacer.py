"""이 파일은 .py 요청 속도 제어 모듈로 도메인별 요청 시작 간격을 보장합니다."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RatePacer:
    """여러 워커가 공유하는 요청 시작 슬롯 예약기.

    requests_per_second 만큼의 슬롯을 1초에 나눠 주며, 슬롯 시각이 deadline 이후라면
    예약하지 않고 False를 돌려준다. 시계/대기 함수는 테스트에서 가짜로 바꿀 수 있다.
    """

    def __init__(
        self,
        requests_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot: Optional[float] = None

    def acquire(
        self,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return False
        # 슬롯 예약은 잠금 안에서, 실제 대기는 잠금 밖에서 한다.
        with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            if deadline is not None and slot >= deadline:
                return False
            self._next_slot = slot + self.interval

        wait_seconds = slot - self._clock()
        if wait_seconds > 0:
            self._sleep(wait_seconds)
        if cancel_event is not None and cancel_event.is_set():
            return False
        return True

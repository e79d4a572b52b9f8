"""이 파일은 .py 테스트 모듈로 요청 슬롯 예약 간격과 deadline/취소 처리를 검증합니다."""

import threading

import pytest

from app.services.rate_pacer import RatePacer


def test_slots_are_spaced_by_rate(fake_clock) -> None:
    pacer = RatePacer(2, clock=fake_clock, sleep=fake_clock.sleep)
    starts = []
    for _ in range(4):
        assert pacer.acquire()
        starts.append(fake_clock())
    assert starts == [1000.0, 1000.5, 1001.0, 1001.5]


def test_slot_after_deadline_is_refused_without_waiting(fake_clock) -> None:
    pacer = RatePacer(1, clock=fake_clock, sleep=fake_clock.sleep)
    assert pacer.acquire(deadline=1000.5)
    assert not pacer.acquire(deadline=1000.5)
    assert fake_clock.sleeps == []


def test_cancelled_event_refuses_slot(fake_clock) -> None:
    pacer = RatePacer(5, clock=fake_clock, sleep=fake_clock.sleep)
    event = threading.Event()
    event.set()
    assert not pacer.acquire(cancel_event=event)


def test_concurrent_acquire_reserves_distinct_slots(fake_clock) -> None:
    pacer = RatePacer(10, clock=fake_clock, sleep=lambda seconds: None)
    threads = [threading.Thread(target=pacer.acquire) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert pacer._next_slot == pytest.approx(1000.0 + 20 * 0.1)

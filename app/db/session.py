"""이 파일은 .py DB 세션 모듈로 엔진/세션 생성과 초기화를 담당합니다."""

from __future__ import annotations

from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import DATABASE_URL, STORAGE_DIR
from .base import Base


def _ensure_storage_dir() -> None:
    if not STORAGE_DIR.exists():
        STORAGE_DIR.mkdir(parents=True, exist_ok=True)


def build_engine(url: str = DATABASE_URL) -> Engine:
    # SQLite는 오케스트레이터/API 스레드에서 함께 쓰므로 스레드 검사를 끈다.
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    _ensure_storage_dir()
    return create_engine(url, connect_args={"check_same_thread": False})


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)


def init_db(bind: Optional[Engine] = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def get_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

"""이 파일은 .py DB 베이스 모듈로 선언적 모델 Base를 제공합니다."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

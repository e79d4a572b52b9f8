"""이 파일은 .py 페이지 수집기 베이스 모듈로 렌더링 능력의 실행 인터페이스를 제공합니다."""

from abc import ABC, abstractmethod
from typing import Callable

from app.core.types import DomainConfig, FetchedPage


class PageFetcher(ABC):
    # 도메인 크롤 1회 동안만 소유되는 자원이다. 종료 경로마다 close()가 호출된다.
    @abstractmethod
    def fetch(self, url: str) -> FetchedPage:
        # 리다이렉트를 따라가지 않고 한 번의 응답만 돌려준다.
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> "PageFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


FetcherFactory = Callable[[DomainConfig], PageFetcher]

"""이 파일은 .py 공통 예외 모듈로 오류 유형을 표준화합니다."""


class ConfigError(ValueError):
    """도메인/심각도 테이블 등 외부 설정 검증 실패 시 사용합니다."""


class PluginConfigError(ConfigError):
    """점검 모듈(plugin.yml) 설정 검증 실패 시 사용합니다."""


class FetchError(RuntimeError):
    """페이지 수집기(외부 렌더링/HTTP) 실행 오류에 사용합니다."""


class IssueStoreError(RuntimeError):
    """Issue 저장소 쓰기/조회 실패를 감싸는 예외입니다."""

"""이 파일은 .py 타입 정의 모듈로 도메인 설정, 수집 페이지, Finding 모델을 제공합니다."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Union


class Severity(str, Enum):
    # 순서가 있는 4단계 심각도. rank가 클수록 심각하다.
    BLOCKER = "BLOCKER"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: Union[str, "Severity"]) -> "Severity":
        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().upper())

    @classmethod
    def worst(cls, values: Iterable["Severity"]) -> Optional["Severity"]:
        # 가장 심각한 값을 고른다(빈 입력이면 None).
        result: Optional[Severity] = None
        for value in values:
            if result is None or value.rank > result.rank:
                result = value
        return result

    @classmethod
    def ordered(cls) -> List["Severity"]:
        # 심각한 순서(BLOCKER → LOW)로 반환한다.
        return [cls.BLOCKER, cls.HIGH, cls.MEDIUM, cls.LOW]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.BLOCKER: 4,
}


class Category(str, Enum):
    LINKS = "LINKS"
    SEO = "SEO"
    SECURITY = "SECURITY"
    PERF = "PERF"
    A11Y = "A11Y"
    API = "API"
    AUTH = "AUTH"
    UX = "UX"


class IssueStatus(str, Enum):
    OPEN = "open"
    FIXING = "fixing"
    VERIFIED = "verified"
    SUPPRESSED = "suppressed"
    WONTFIX = "wontfix"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class GoNoGo(str, Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


# 티어는 우선순위 순서로 나열한다(앞쪽이 높음).
DOMAIN_TIERS = ("primary", "product", "subdomain", "apps", "collector")


@dataclass(frozen=True)
class DomainConfig:
    # 외부 설정에서 읽어오는 감사 대상이다. 크롤 엔진은 읽기만 한다.
    hostname: str
    tier: str = "apps"
    enabled: bool = True
    crawl_budget_pages: int = 500
    crawl_budget_depth: int = 6
    concurrency: int = 4
    requests_per_second: float = 2.0
    max_runtime_minutes: float = 8.0
    scheme: str = "https"
    port: Optional[int] = None
    # plugin_id -> 도메인별 점검 설정
    check_config: Mapping[str, Dict] = field(default_factory=dict)

    @property
    def origin(self) -> str:
        netloc = self.hostname.lower()
        if self.port:
            netloc = f"{netloc}:{self.port}"
        return f"{self.scheme}://{netloc}"

    @property
    def root_url(self) -> str:
        return f"{self.origin}/"

    @property
    def tier_rank(self) -> int:
        return DOMAIN_TIERS.index(self.tier) if self.tier in DOMAIN_TIERS else len(DOMAIN_TIERS)

    @property
    def max_runtime_seconds(self) -> float:
        return self.max_runtime_minutes * 60.0


@dataclass
class FetchedPage:
    # 페이지 수집기(렌더러)가 돌려주는 결과. 리다이렉트는 따라가지 않은 상태다.
    url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    html: str = ""
    links: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    console_errors: List[str] = field(default_factory=list)
    # 외부 성능 감사기가 계산한 0~100 점수(performance, accessibility ...).
    metrics: Dict[str, float] = field(default_factory=dict)
    location: Optional[str] = None
    elapsed_ms: Optional[float] = None
    # 개별 Lighthouse 감사 결과(감사 ID -> 0~1 점수). 렌더러가 없으면 비어 있다.
    audits: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # 헤더 조회는 항상 소문자 키로 한다.
        self.headers = {str(key).lower(): value for key, value in (self.headers or {}).items()}

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400 and bool(self.location)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


# --- Finding 페이로드: 카테고리별 필드는 아래 고정된 변형에만 담는다. ---


@dataclass(frozen=True)
class LinkPayload:
    kind = "link"
    status: Optional[int] = None
    source_url: Optional[str] = None
    target_url: Optional[str] = None
    redirect_chain: tuple = ()


@dataclass(frozen=True)
class MarkupPayload:
    kind = "markup"
    element: str = ""
    observed: Optional[str] = None


@dataclass(frozen=True)
class HeaderPayload:
    kind = "header"
    header: str = ""
    observed: Optional[str] = None
    recommended: Optional[str] = None


@dataclass(frozen=True)
class MetricPayload:
    kind = "metric"
    metric: str = ""
    score: float = 0.0


@dataclass(frozen=True)
class AuditPayload:
    # 개별 Lighthouse 감사 결과. score는 0~1 범위다.
    kind = "audit"
    audit_id: str = ""
    score: float = 0.0


@dataclass(frozen=True)
class AccessPayload:
    kind = "access"
    path: str = ""
    status: Optional[int] = None


@dataclass(frozen=True)
class FailurePayload:
    kind = "failure"
    stage: str = ""
    error: str = ""
    module_id: Optional[str] = None


FindingPayload = Union[
    LinkPayload,
    MarkupPayload,
    HeaderPayload,
    MetricPayload,
    AuditPayload,
    AccessPayload,
    FailurePayload,
]


def payload_to_dict(payload: Optional[FindingPayload]) -> Dict:
    # 저장용으로 kind 태그를 붙여 직렬화한다.
    if payload is None:
        return {}
    data = {"kind": payload.kind}
    for name in payload.__dataclass_fields__:
        value = getattr(payload, name)
        data[name] = list(value) if isinstance(value, tuple) else value
    return data


@dataclass
class Finding:
    # 점검 모듈 1회 실행 결과. 저장되지 않고 Issue 조립기로 바로 넘어간다.
    category: Category
    rule_id: str
    title: str
    message: str
    route: str
    severity_hint: Optional[Severity] = None
    evidence: List[str] = field(default_factory=list)
    auto_fixable: bool = False
    # False면 지문에서 route를 제외한다(도메인 전체 규칙).
    route_scoped: bool = True
    # 같은 규칙 안에서 의미가 다른 결함을 구분하는 서명(헤더명, 모듈 ID 등).
    signature: Optional[str] = None
    payload: Optional[FindingPayload] = None

    @property
    def rule_key(self) -> str:
        if self.signature:
            return f"{self.rule_id}:{self.signature}"
        return self.rule_id

    @property
    def metric(self) -> Optional[float]:
        if isinstance(self.payload, MetricPayload):
            return self.payload.score
        return None

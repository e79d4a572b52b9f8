"""이 파일은 .py 도메인 설정 모듈로 감사 대상 목록을 YAML에서 읽고 검증합니다."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from .config import DEFAULT_DOMAINS_FILE
from .config_validation import apply_config_schema
from .errors import ConfigError
from .types import DOMAIN_TIERS, DomainConfig

DOMAIN_SCHEMA = {
    "required": ["hostname"],
    "additional_properties": False,
    "properties": {
        "hostname": {"type": "string", "min_length": 1, "pattern": r"^[A-Za-z0-9.-]+$"},
        "tier": {"type": "string", "enum": list(DOMAIN_TIERS), "default": "apps"},
        "enabled": {"type": "boolean", "default": True},
        "crawl_budget_pages": {"type": "integer", "min": 1, "default": 500},
        "crawl_budget_depth": {"type": "integer", "min": 0, "default": 6},
        "concurrency": {"type": "integer", "min": 1, "max": 32, "default": 4},
        "requests_per_second": {"type": "number", "exclusive_min": 0, "default": 2},
        "max_runtime_minutes": {"type": "number", "exclusive_min": 0, "default": 8},
        "scheme": {"type": "string", "enum": ["http", "https"], "default": "https"},
        "port": {"type": "integer", "min": 1, "max": 65535},
        "check_config": {"type": "object", "default": {}},
    },
}


def parse_domain(entry: Dict) -> DomainConfig:
    # 한 항목을 스키마로 검증하고 DomainConfig로 변환한다.
    data = apply_config_schema(DOMAIN_SCHEMA, entry, error_cls=ConfigError, label="Domain")
    return DomainConfig(
        hostname=data["hostname"].lower(),
        tier=data["tier"],
        enabled=data["enabled"],
        crawl_budget_pages=data["crawl_budget_pages"],
        crawl_budget_depth=data["crawl_budget_depth"],
        concurrency=data["concurrency"],
        requests_per_second=float(data["requests_per_second"]),
        max_runtime_minutes=float(data["max_runtime_minutes"]),
        scheme=data["scheme"],
        port=data.get("port"),
        check_config=dict(data["check_config"]),
    )


def load_domains(path: Optional[Path] = None) -> List[DomainConfig]:
    # YAML 파일의 domains 목록을 읽는다. 중복 hostname은 허용하지 않는다.
    source = Path(path or DEFAULT_DOMAINS_FILE)
    if not source.exists():
        raise ConfigError(f"Domains file not found: {source}")
    data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    domains: List[DomainConfig] = []
    seen = set()
    for entry in data.get("domains", []) or []:
        domain = parse_domain(entry)
        if domain.hostname in seen:
            raise ConfigError(f"Duplicate domain: {domain.hostname}")
        seen.add(domain.hostname)
        domains.append(domain)
    return domains


def select_domains(
    domains: Iterable[DomainConfig],
    hostnames: Optional[Iterable[str]] = None,
    tier: Optional[str] = None,
) -> List[DomainConfig]:
    # enabled 항목만 남기고, 지정된 hostname/tier로 범위를 좁힌다. 티어 우선순위로 정렬한다.
    selected = [domain for domain in domains if domain.enabled]
    if hostnames:
        wanted = {name.strip().lower() for name in hostnames if name.strip()}
        selected = [domain for domain in selected if domain.hostname in wanted]
    if tier:
        selected = [domain for domain in selected if domain.tier == tier]
    return sorted(selected, key=lambda domain: (domain.tier_rank, domain.hostname))


def index_by_hostname(domains: Iterable[DomainConfig]) -> Dict[str, DomainConfig]:
    return {domain.hostname: domain for domain in domains}

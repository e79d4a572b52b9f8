"""이 파일은 .py 심각도 분류 모듈로 YAML 규칙 테이블을 읽어 Finding 심각도를 결정합니다."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import yaml

from .config import DEFAULT_SEVERITY_RULES_FILE
from .errors import ConfigError
from .types import Category, Severity

DEFAULT_YELLOW_HIGH_THRESHOLD = 10
CATEGORY_WILDCARD = "*"


def normalize_rule(rule_id: Optional[str]) -> str:
    # None/공백을 처리하고 소문자 표준화한다.
    if not rule_id:
        return ""
    return rule_id.strip().lower()


@dataclass(frozen=True)
class MetricBand:
    # 점수가 각 기준값 "미만"이면 해당 심각도가 된다.
    blocker_below: float
    high_below: float
    medium_below: float

    def classify(self, score: float) -> Severity:
        if score < self.blocker_below:
            return Severity.BLOCKER
        if score < self.high_below:
            return Severity.HIGH
        if score < self.medium_below:
            return Severity.MEDIUM
        return Severity.LOW


@dataclass(frozen=True)
class SeverityTable:
    # rule_id -> 심각도, "CATEGORY:*" -> 카테고리 기본값, rule_id -> 점수 밴드.
    rules: Mapping[str, Severity] = field(default_factory=dict)
    metric_bands: Mapping[str, MetricBand] = field(default_factory=dict)
    yellow_high_threshold: int = DEFAULT_YELLOW_HIGH_THRESHOLD

    @classmethod
    def from_file(cls, path: Path) -> "SeverityTable":
        # YAML 파일을 읽어 규칙 테이블을 구성한다.
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        return cls.from_dict(data)

    @classmethod
    def from_default(cls) -> "SeverityTable":
        # 기본 규칙 파일이 있으면 로드하고 없으면 빈 테이블을 사용한다.
        if DEFAULT_SEVERITY_RULES_FILE.exists():
            return cls.from_file(DEFAULT_SEVERITY_RULES_FILE)
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping) -> "SeverityTable":
        rules: Dict[str, Severity] = {}
        for key, value in (data.get("rules") or {}).items():
            rules[normalize_rule(str(key))] = _parse_severity(value, f"rules.{key}")

        for category, value in (data.get("category_defaults") or {}).items():
            try:
                normalized_category = Category(str(category).strip().upper())
            except ValueError as exc:
                raise ConfigError(f"Unknown category in category_defaults: {category}") from exc
            key = _category_key(normalized_category)
            rules[key] = _parse_severity(value, f"category_defaults.{category}")

        bands: Dict[str, MetricBand] = {}
        for key, spec in (data.get("metric_bands") or {}).items():
            bands[normalize_rule(str(key))] = _parse_band(key, spec)

        go_no_go = data.get("go_no_go") or {}
        threshold = go_no_go.get("yellow_high_threshold", DEFAULT_YELLOW_HIGH_THRESHOLD)
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise ConfigError("go_no_go.yellow_high_threshold must be a non-negative integer")

        return cls(rules=rules, metric_bands=bands, yellow_high_threshold=threshold)

    def candidates(
        self,
        category: Category,
        rule_id: str,
        metric: Optional[float] = None,
    ) -> List[Severity]:
        # 하나의 Finding에 적용 가능한 모든 규칙의 심각도를 모은다.
        normalized = normalize_rule(rule_id)
        found: List[Severity] = []
        for key in (normalized, normalized.split(":", 1)[0], _category_key(Category(category))):
            severity = self.rules.get(key)
            if severity is not None:
                found.append(severity)
        band = self.metric_bands.get(normalized) or self.metric_bands.get(normalized.split(":", 1)[0])
        if band is not None and metric is not None:
            found.append(band.classify(float(metric)))
        return found

    def classify(
        self,
        category: Category,
        rule_id: str,
        metric: Optional[float] = None,
        default: Optional[Severity] = None,
    ) -> Severity:
        # 여러 규칙이 겹치면 가장 심각한 값을 쓴다. 해당 규칙이 없으면 default → LOW.
        worst = Severity.worst(self.candidates(category, rule_id, metric))
        if worst is not None:
            return worst
        if default is not None:
            return Severity.parse(default)
        return Severity.LOW


def _category_key(category: Category) -> str:
    return f"{category.value.lower()}:{CATEGORY_WILDCARD}"


def _parse_severity(value: Union[str, Severity], where: str) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid severity '{value}' at {where}") from exc


def _parse_band(key: str, spec: Mapping) -> MetricBand:
    if not isinstance(spec, Mapping):
        raise ConfigError(f"metric_bands.{key} must be an object")
    try:
        band = MetricBand(
            blocker_below=float(spec["BLOCKER"]),
            high_below=float(spec["HIGH"]),
            medium_below=float(spec["MEDIUM"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"metric_bands.{key} needs numeric BLOCKER/HIGH/MEDIUM") from exc
    if not band.blocker_below <= band.high_below <= band.medium_below:
        raise ConfigError(f"metric_bands.{key} thresholds must be ascending")
    return band

"""이 파일은 .py 설정 스키마 검증 모듈로 도메인 항목과 점검 모듈 설정을 검사합니다."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Type

from .errors import ConfigError, PluginConfigError


_TYPE_MAP = {
    # JSON 스키마 타입을 파이썬 타입으로 매핑한다.
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "object": dict,
    "array": list,
}


def apply_config_schema(
    schema: Optional[Dict[str, Any]],
    config: Optional[Dict[str, Any]],
    error_cls: Type[ConfigError] = PluginConfigError,
    label: str = "Config",
) -> Dict[str, Any]:
    # 스키마가 없으면 전달된 설정을 그대로 반환한다.
    if not schema:
        return dict(config or {})
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise error_cls(f"{label} must be an object")

    props = schema.get("properties", {})
    errors: List[str] = []
    result = dict(config)

    # default를 먼저 주입한 뒤 필수값 누락을 확인한다.
    for key, spec in props.items():
        if key not in result and "default" in spec:
            result[key] = spec["default"]
    for key in schema.get("required", []):
        if key not in result:
            errors.append(f"Missing required {label.lower()}: {key}")

    if schema.get("additional_properties") is False:
        for key in result:
            if key not in props:
                errors.append(f"Unknown {label.lower()} key: {key}")

    for key, value in result.items():
        spec = props.get(key)
        if spec:
            errors.extend(_validate_value(label, key, value, spec))

    if errors:
        # 누적된 오류를 하나의 예외로 전달한다.
        raise error_cls("; ".join(errors))
    return result


def _validate_value(label: str, key: str, value: Any, spec: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    expected = spec.get("type")
    if expected:
        expected_type = _TYPE_MAP.get(expected)
        if expected_type is None:
            return [f"Unsupported type in schema: {expected}"]
        # bool은 int의 하위 타입이므로 숫자 검증에서 따로 거른다.
        if expected in ("integer", "number") and isinstance(value, bool):
            return [f"{label} '{key}' must be {expected}"]
        if not isinstance(value, expected_type):
            return [f"{label} '{key}' must be {expected}"]

    if "enum" in spec and value not in spec["enum"]:
        errors.append(f"{label} '{key}' must be one of {spec['enum']}")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if "min" in spec and value < spec["min"]:
            errors.append(f"{label} '{key}' must be >= {spec['min']}")
        if "exclusive_min" in spec and value <= spec["exclusive_min"]:
            errors.append(f"{label} '{key}' must be > {spec['exclusive_min']}")
        if "max" in spec and value > spec["max"]:
            errors.append(f"{label} '{key}' must be <= {spec['max']}")
    if isinstance(value, str):
        if "min_length" in spec and len(value) < spec["min_length"]:
            errors.append(f"{label} '{key}' length must be >= {spec['min_length']}")
        if "pattern" in spec and not re.search(spec["pattern"], value):
            errors.append(f"{label} '{key}' does not match pattern")
    if isinstance(value, list) and "items" in spec:
        item_type = _TYPE_MAP.get(spec["items"].get("type", ""), object)
        if any(not isinstance(item, item_type) for item in value):
            errors.append(f"{label} '{key}' items must be {spec['items'].get('type')}")
    return errors

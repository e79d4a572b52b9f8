"""이 파일은 .py 점검 모듈 로더로 plugin.yml 메타데이터 로딩, 동적 임포트, 카테고리 레지스트리를 제공합니다."""

import importlib.util
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from .config_validation import apply_config_schema
from .errors import PluginConfigError
from .plugin_base import BaseCheck
from .types import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginMeta:
    # plugin.yml에서 읽은 메타 정보를 구조화한다.
    plugin_id: str
    name: str
    version: str
    category: Category
    order: int
    auto_fixable: bool
    route_scoped: bool
    description: Optional[str]
    config_schema: Optional[dict]
    entry_point: str
    class_name: str
    plugin_dir: Path

    @property
    def module_path(self) -> Path:
        # entry_point를 플러그인 디렉토리에 결합해 실제 모듈 경로를 만든다.
        return self.plugin_dir / self.entry_point


class PluginLoader:
    def __init__(self, plugins_dir: Path):
        self.plugins_dir = Path(plugins_dir)

    def discover(self) -> List[PluginMeta]:
        # plugins_dir 하위의 모든 plugin.yml을 탐색한다.
        metas: List[PluginMeta] = []
        for plugin_file in sorted(self.plugins_dir.rglob("plugin.yml")):
            metas.append(self._load_meta(plugin_file))
        return metas

    def load_check(self, meta: PluginMeta, config: Optional[Dict] = None) -> BaseCheck:
        # entry_point를 동적으로 import하여 점검 클래스 인스턴스를 만든다.
        module = self._import_module(meta)
        check_class = getattr(module, meta.class_name, None)
        if check_class is None:
            raise ImportError(f"Class {meta.class_name} not found in {meta.module_path}")
        if not isinstance(check_class, type) or not issubclass(check_class, BaseCheck):
            raise TypeError(f"{meta.class_name} does not extend BaseCheck")
        # 실행 단위 설정은 생성 시점에 한 번 검증한다.
        validated = apply_config_schema(meta.config_schema, config or {})
        return check_class(
            plugin_id=meta.plugin_id,
            category=meta.category,
            auto_fixable=meta.auto_fixable,
            route_scoped=meta.route_scoped,
            config=validated,
            config_schema=meta.config_schema,
        )

    def _load_meta(self, plugin_file: Path) -> PluginMeta:
        # plugin.yml을 읽어 필수 필드를 검증한다.
        data = yaml.safe_load(plugin_file.read_text(encoding="utf-8")) or {}
        required = ["id", "name", "version", "category", "entry_point", "class_name"]
        for field in required:
            if field not in data:
                raise PluginConfigError(f"Missing required field {field} in {plugin_file}")
        try:
            category = Category(str(data["category"]).strip().upper())
        except ValueError as exc:
            raise PluginConfigError(f"Unknown category {data['category']} in {plugin_file}") from exc

        return PluginMeta(
            plugin_id=str(data["id"]),
            name=str(data["name"]),
            version=str(data["version"]),
            category=category,
            order=int(data.get("order", 100)),
            auto_fixable=bool(data.get("auto_fixable", False)),
            route_scoped=bool(data.get("route_scoped", True)),
            description=data.get("description"),
            config_schema=data.get("config_schema"),
            entry_point=str(data["entry_point"]),
            class_name=str(data["class_name"]),
            plugin_dir=plugin_file.parent,
        )

    def _import_module(self, meta: PluginMeta):
        # entry_point 경로가 존재하는지 확인한다.
        module_path = meta.module_path
        if not module_path.exists():
            raise FileNotFoundError(f"Entry point not found: {module_path}")

        spec = importlib.util.spec_from_file_location(f"auditops_check_{meta.plugin_id}", module_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load module from {module_path}")

        module = importlib.util.module_from_spec(spec)
        # dataclass 등은 실행 중에 sys.modules에서 자기 모듈을 찾는다.
        sys.modules[spec.name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(spec.name, None)
            raise
        return module


class CheckRegistry:
    """카테고리 -> 순서가 정해진 점검 모듈 목록. 실행 시작 시 한 번 구성한다."""

    def __init__(self, checks_by_category: Optional[Dict[Category, List[BaseCheck]]] = None) -> None:
        self._checks: Dict[Category, List[BaseCheck]] = {}
        for category, checks in (checks_by_category or {}).items():
            for check in checks:
                self.register(check, category=category)

    @classmethod
    def from_loader(
        cls,
        loader: PluginLoader,
        run_config: Optional[Dict[str, Dict]] = None,
        enabled_ids: Optional[Iterable[str]] = None,
    ) -> "CheckRegistry":
        # plugin.yml 탐색 결과를 order → plugin_id 순으로 등록한다.
        run_config = run_config or {}
        wanted = set(enabled_ids) if enabled_ids else None
        registry = cls()
        metas = sorted(loader.discover(), key=lambda meta: (meta.order, meta.plugin_id))
        for meta in metas:
            if wanted is not None and meta.plugin_id not in wanted:
                continue
            registry.register(loader.load_check(meta, run_config.get(meta.plugin_id)))
        logger.info("Registered %d check modules", len(registry))
        return registry

    def register(self, check: BaseCheck, category: Optional[Category] = None) -> None:
        key = Category(category or check.category)
        bucket = self._checks.setdefault(key, [])
        if any(existing.plugin_id == check.plugin_id for existing in bucket):
            raise KeyError(f"Check already registered: {check.plugin_id}")
        bucket.append(check)

    def categories(self) -> List[Category]:
        return [category for category in Category if self._checks.get(category)]

    def checks_for(self, category: Category) -> List[BaseCheck]:
        return list(self._checks.get(Category(category), []))

    def resolve(self, categories: Optional[Iterable[Category]] = None) -> List[BaseCheck]:
        # 실행 카테고리 집합에 해당하는 점검 목록을 평탄화해 돌려준다.
        selected = [Category(item) for item in categories] if categories else list(Category)
        resolved: List[BaseCheck] = []
        for category in Category:
            if category in selected:
                resolved.extend(self._checks.get(category, []))
        return resolved

    def __len__(self) -> int:
        return sum(len(checks) for checks in self._checks.values())

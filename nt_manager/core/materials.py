from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class Category(str, Enum):
    COLD_CHAIN = "cold_chain"
    FLAMMABLE = "flammable"
    STANDARD = "standard"


DEFAULT_SLA_MINUTES: dict[Category, int] = {
    Category.COLD_CHAIN: 240,
    Category.FLAMMABLE: 240,
    Category.STANDARD: 120,
}


@dataclass(frozen=True)
class MaterialCatalog:
    """Code sets and SLA budgets that drive item classification."""

    cold_chain: frozenset[str] = frozenset()
    flammable: frozenset[str] = frozenset()
    sla_minutes: dict[Category, int] = field(default_factory=lambda: dict(DEFAULT_SLA_MINUTES))

    def classify(self, code: str | None) -> Category:
        normalized = (code or "").strip()
        if normalized in self.cold_chain:
            return Category.COLD_CHAIN
        if normalized in self.flammable:
            return Category.FLAMMABLE
        return Category.STANDARD

    def sla_for(self, category: Category) -> int:
        return self.sla_minutes.get(category, DEFAULT_SLA_MINUTES[category])


def _codes(raw: object) -> frozenset[str]:
    if not isinstance(raw, list):
        return frozenset()
    return frozenset(str(item).strip() for item in raw if str(item).strip())


def _materials_path() -> Path:
    env_path = os.getenv("NT_MANAGER_MATERIALS_FILE")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return CONFIG_DIR / "materials.yaml"


def load_catalog(path: Path | None = None) -> MaterialCatalog:
    path = path or _materials_path()
    if not path.exists():
        logger.warning("materials file %s not found, every code classifies as standard", path)
        return MaterialCatalog()
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}

    sla_minutes = dict(DEFAULT_SLA_MINUTES)
    for key, value in (data.get("sla_minutes") or {}).items():
        try:
            sla_minutes[Category(key)] = int(value)
        except (TypeError, ValueError):
            logger.warning("ignoring SLA entry %r=%r in %s", key, value, path)

    return MaterialCatalog(
        cold_chain=_codes(data.get("cold_chain")),
        flammable=_codes(data.get("flammable")),
        sla_minutes=sla_minutes,
    )


_catalog: MaterialCatalog = load_catalog()


def configure_catalog(catalog: MaterialCatalog) -> None:
    """Install the catalog used by :func:`classify` and :func:`sla_minutes`."""

    global _catalog
    _catalog = catalog


def get_catalog() -> MaterialCatalog:
    return _catalog


def classify(code: str | None) -> Category:
    return _catalog.classify(code)


def sla_minutes(category: Category) -> int:
    return _catalog.sla_for(category)

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

BUILD = "build"
SEARCH = "search"

ID_SPACE_ORIGINAL = "original"
ID_SPACE_SORTED = "sorted"

MAPPING_SUFFIX = ".mapping"


DEFAULT_RUNTIME: dict[str, Any] = {
    "engine": "bruteforce",
    "top_k": 10,
    "edge_limit": None,
    "id_space": ID_SPACE_ORIGINAL,
    "mapping_file": None,
    "output": None,
    "wandb": {
        "enabled": False,
        "project": None,
        "entity": None,
        "run_name": None,
        "group": None,
        "tags": [],
        "mode": None,
    },
}

# Checked in this order; the first empty one is reported.
_REQUIRED_PATHS: dict[str, tuple[str, ...]] = {
    BUILD: ("data_path", "index_file"),
    SEARCH: ("data_path", "query_path", "query_ranges_file", "groundtruth_file", "index_file"),
}
_REQUIRED_NUMBERS: dict[str, tuple[str, ...]] = {
    BUILD: ("M", "ef_construction", "threads"),
    SEARCH: ("M", "ef_search", "top_k"),
}

KNOWN_KEYS = frozenset(
    {
        "data_path",
        "index_file",
        "query_path",
        "query_ranges_file",
        "groundtruth_file",
        "M",
        "ef_construction",
        "ef_search",
        "threads",
        "top_k",
        "edge_limit",
        "engine",
        "id_space",
        "mapping_file",
        "output",
        "wandb",
    }
)


@dataclass(frozen=True, slots=True)
class RunConfig:
    mode: str
    data_path: Path
    index_file: Path
    M: int
    engine: str = "bruteforce"
    ef_construction: int | None = None
    threads: int | None = None
    query_path: Path | None = None
    query_ranges_file: Path | None = None
    groundtruth_file: Path | None = None
    ef_search: int | None = None
    top_k: int = 10
    edge_limit: int | None = None
    id_space: str = ID_SPACE_ORIGINAL
    mapping_file: Path | None = None
    output: Path | None = None
    wandb: dict[str, Any] = field(default_factory=dict)

    @property
    def remap_ids(self) -> bool:
        return self.id_space == ID_SPACE_SORTED

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name in self.__slots__:
            value = getattr(self, name)
            payload[name] = str(value) if isinstance(value, Path) else value
        return payload


def _require_path(values: dict[str, Any], key: str) -> Path:
    raw = values.get(key)
    if raw is None or str(raw).strip() == "":
        raise ConfigError(key, "is empty")
    return Path(str(raw))


def _positive_int(values: dict[str, Any], key: str) -> int:
    raw = values.get(key)
    if raw is None or isinstance(raw, bool):
        raise ConfigError(key, "should be a positive integer")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ConfigError(key, f"should be a positive integer, got {raw!r}")
        raw = int(raw)
    try:
        number = int(str(raw).strip()) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        raise ConfigError(key, f"should be a positive integer, got {raw!r}") from None
    if number <= 0:
        raise ConfigError(key, f"should be a positive integer, got {number}")
    return number


def _optional_path(value: Any) -> Path | None:
    if value is None or str(value).strip() == "":
        return None
    return Path(str(value))


def _normalize_wandb(raw: Any) -> dict[str, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("wandb", "must be a mapping")
    cfg = dict(DEFAULT_RUNTIME["wandb"])
    cfg.update({key: value for key, value in raw.items() if value is not None})
    cfg["enabled"] = bool(cfg.get("enabled", False))
    tags = cfg.get("tags")
    if tags is None:
        cfg["tags"] = []
    elif isinstance(tags, list):
        cfg["tags"] = [str(x) for x in tags]
    else:
        raise ConfigError("wandb.tags", "must be a list")
    return cfg


def load_config_file(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError("config", f"cannot be read: {exc}") from exc
    loaded = yaml.safe_load(text)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError("config", "must be a mapping at the top level")
    unknown = sorted(str(key) for key in loaded if str(key) not in KNOWN_KEYS)
    if unknown:
        raise ConfigError(unknown[0], "is not a recognised option")
    if loaded.get("wandb") is not None and not isinstance(loaded["wandb"], dict):
        raise ConfigError("wandb", "must be a mapping")
    return {str(key): value for key, value in loaded.items()}


def merge_values(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Layer CLI overrides on top of file values; ``None`` means "not given"."""
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "wandb" and isinstance(value, dict):
            current = merged.get("wandb") or {}
            if not isinstance(current, dict):
                raise ConfigError("wandb", "must be a mapping")
            nested = dict(current)
            nested.update({k: v for k, v in value.items() if v is not None})
            merged["wandb"] = nested
            continue
        merged[key] = value
    return merged


def resolve_config(mode: str, values: dict[str, Any]) -> RunConfig:
    if mode not in _REQUIRED_PATHS:
        raise ConfigError("mode", f"must be '{BUILD}' or '{SEARCH}', got {mode!r}")

    merged = dict(DEFAULT_RUNTIME)
    merged.update({key: value for key, value in values.items() if value is not None})

    paths = {key: _require_path(merged, key) for key in _REQUIRED_PATHS[mode]}
    numbers = {key: _positive_int(merged, key) for key in _REQUIRED_NUMBERS[mode]}

    edge_limit: int | None = None
    if mode == SEARCH:
        edge_limit = numbers["M"] if merged.get("edge_limit") is None else _positive_int(merged, "edge_limit")

    id_space = str(merged.get("id_space") or ID_SPACE_ORIGINAL)
    if id_space not in (ID_SPACE_ORIGINAL, ID_SPACE_SORTED):
        raise ConfigError("id_space", f"must be '{ID_SPACE_ORIGINAL}' or '{ID_SPACE_SORTED}', got {id_space!r}")
    mapping_file = _optional_path(merged.get("mapping_file"))
    if mapping_file is not None and id_space != ID_SPACE_SORTED:
        raise ConfigError("mapping_file", f"requires id_space '{ID_SPACE_SORTED}'")
    if mode == SEARCH and id_space == ID_SPACE_SORTED and mapping_file is None:
        data_path = paths["data_path"]
        mapping_file = data_path.with_name(data_path.name + MAPPING_SUFFIX)

    engine = str(merged.get("engine") or DEFAULT_RUNTIME["engine"]).strip()
    if not engine:
        raise ConfigError("engine", "is empty")

    return RunConfig(
        mode=mode,
        data_path=paths["data_path"],
        index_file=paths["index_file"],
        M=numbers["M"],
        engine=engine,
        ef_construction=numbers.get("ef_construction"),
        threads=numbers.get("threads"),
        query_path=paths.get("query_path"),
        query_ranges_file=paths.get("query_ranges_file"),
        groundtruth_file=paths.get("groundtruth_file"),
        ef_search=numbers.get("ef_search"),
        top_k=numbers.get("top_k", int(DEFAULT_RUNTIME["top_k"])),
        edge_limit=edge_limit,
        id_space=id_space,
        mapping_file=mapping_file if mode == SEARCH else None,
        output=_optional_path(merged.get("output")),
        wandb=_normalize_wandb(merged.get("wandb")),
    )


__all__ = [
    "BUILD",
    "DEFAULT_RUNTIME",
    "ID_SPACE_ORIGINAL",
    "ID_SPACE_SORTED",
    "KNOWN_KEYS",
    "MAPPING_SUFFIX",
    "RunConfig",
    "SEARCH",
    "load_config_file",
    "merge_values",
    "resolve_config",
]

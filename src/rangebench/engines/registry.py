from __future__ import annotations

from .base import RangeFilteredEngine
from .bruteforce import BruteForceEngine
from .hnswlib import HnswlibEngine
from ..errors import EngineError


ENGINES: dict[str, type[RangeFilteredEngine]] = {
    BruteForceEngine.name: BruteForceEngine,
    HnswlibEngine.name: HnswlibEngine,
}


def resolve_engine(name: str) -> RangeFilteredEngine:
    engine_cls = ENGINES.get(name)
    if engine_cls is None:
        raise EngineError(f"unknown engine {name!r}; expected one of {sorted(ENGINES)}")
    ok, reason = engine_cls.availability()
    if not ok:
        raise EngineError(f"engine {name!r} is not available: {reason or 'not installed'}")
    return engine_cls()


__all__ = ["ENGINES", "resolve_engine"]

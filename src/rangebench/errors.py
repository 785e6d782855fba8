from __future__ import annotations

from pathlib import Path


class RangeBenchError(Exception):
    """Base class for every fatal harness condition."""


class ConfigError(RangeBenchError, ValueError):
    def __init__(self, parameter: str, reason: str):
        self.parameter = parameter
        self.reason = reason
        super().__init__(f"{parameter} {reason}")


class InputOpenError(RangeBenchError, OSError):
    def __init__(self, path: str | Path, detail: str | None = None):
        self.path = str(path)
        message = f"Error opening file: {self.path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class LineParseError(RangeBenchError, ValueError):
    def __init__(self, path: str | Path, line_number: int, reason: str):
        self.path = str(path)
        self.line_number = int(line_number)
        self.reason = reason
        super().__init__(f"{reason} at line {self.line_number} of {self.path}")


class RecordFormatError(RangeBenchError, ValueError):
    pass


class PreconditionError(RangeBenchError):
    pass


class IdentifierMappingError(RangeBenchError, IndexError):
    pass


class EngineError(RangeBenchError, RuntimeError):
    pass


class SamplerStateError(RangeBenchError, RuntimeError):
    pass


__all__ = [
    "ConfigError",
    "EngineError",
    "IdentifierMappingError",
    "InputOpenError",
    "LineParseError",
    "PreconditionError",
    "RangeBenchError",
    "RecordFormatError",
    "SamplerStateError",
]

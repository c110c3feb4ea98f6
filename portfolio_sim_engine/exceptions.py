"""Exception taxonomy for the simulation and aggregation engine.

- ``ValidationError``: bad inputs, rejected before any computation starts.
- ``InsufficientDataError``: nothing left to compute; the whole call fails.
- ``PartialDataWarning``: one symbol lacked data; collected, never raised.
- ``ProviderNotConfiguredError``: a collaborator was requested but not registered.
- ``CurrencyConversionError``: an FX pair could not be converted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for engine failures surfaced to callers."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.message,
            "error_type": type(self).__name__,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(EngineError, ValueError):
    """Invalid request parameters (dates, currency, group_by, holding fields)."""


class InsufficientDataError(EngineError):
    """No holdings, no usable price series, or no share counts to simulate."""


class ProviderNotConfiguredError(EngineError, RuntimeError):
    """A data provider was requested from the registry but never set."""


class CurrencyConversionError(EngineError):
    """Conversion between two currencies is unsupported or failed."""


@dataclass(frozen=True)
class PartialDataWarning:
    """Non-fatal annotation: ``symbol`` was degraded during ``stage``."""

    symbol: str
    reason: str
    stage: str = "simulation"

    def __str__(self) -> str:
        return f"{self.symbol}: {self.reason}"

"""Error taxonomy for seat allocation and coalition analysis."""
from __future__ import annotations

from typing import Optional


class CoalitionEngineError(Exception):
    """Base error for the engine."""


class InvalidInputError(CoalitionEngineError, ValueError):
    """Malformed or out-of-range input.

    ``party_id`` names the party that triggered the error, when there is one.
    """

    def __init__(self, message: str, party_id: Optional[str] = None):
        self.message = message
        self.party_id = party_id
        if party_id is not None:
            message = f"{message} (party {party_id!r})"
        super().__init__(message)


class ComputationLimitExceeded(CoalitionEngineError):
    """Coalition enumeration went over its size or time budget."""

    def __init__(self, message: str, limit: float, evaluated: int):
        self.message = message
        self.limit = limit
        self.evaluated = evaluated
        super().__init__(message)


class AnalysisCancelled(CoalitionEngineError):
    """The caller cancelled a running enumeration."""

    def __init__(self, evaluated: int):
        self.evaluated = evaluated
        super().__init__(f"Coalition analysis cancelled after {evaluated} combinations")


__all__ = [
    "CoalitionEngineError",
    "InvalidInputError",
    "ComputationLimitExceeded",
    "AnalysisCancelled",
]

"""Mutation response interpretation.

A ``setPixel`` response comes in two shapes:

rate limited::

    {"errors": [{"extensions": {"nextAvailablePixelTs": 1700000000000}}]}

accepted::

    {"data": {"act": {"data": [
        {"data": {"nextAvailablePixelTimestamp": 1700000000000}}
    ]}}}

Anything else is malformed. Shapes are checked with pydantic models and the
outcome is returned as an :class:`Interpretation` value; no exception leaves
:func:`interpret_response`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

__all__ = ["InterpretationKind", "Interpretation", "interpret_response"]


# Cooldown timestamps are epoch milliseconds; 1e14 ms is past year 5000
_MAX_EPOCH_MS = 1e14


class _ErrorExtensions(BaseModel):
    next_available_pixel_ts: float = Field(
        ...,
        alias="nextAvailablePixelTs",
        ge=0,
        le=_MAX_EPOCH_MS,
        allow_inf_nan=False,
    )


class _ErrorEntry(BaseModel):
    extensions: _ErrorExtensions
    message: Optional[str] = None


class RateLimitedBody(BaseModel):
    errors: List[_ErrorEntry] = Field(..., min_length=1)


class _Cooldown(BaseModel):
    next_available_pixel_timestamp: float = Field(
        ...,
        alias="nextAvailablePixelTimestamp",
        ge=0,
        le=_MAX_EPOCH_MS,
        allow_inf_nan=False,
    )


class _BasicMessage(BaseModel):
    data: _Cooldown


class _Act(BaseModel):
    data: List[_BasicMessage] = Field(..., min_length=1)


class _ActData(BaseModel):
    act: _Act


class PlacedBody(BaseModel):
    data: _ActData


class InterpretationKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    PLACED = "placed"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class Interpretation:
    kind: InterpretationKind
    next_available_ms: Optional[float] = None
    detail: str = ""

    def deadline_ms(self, margin_ms: float) -> Optional[float]:
        """Epoch milliseconds before which no new attempt should be made."""
        if self.next_available_ms is None:
            return None
        return self.next_available_ms + margin_ms


def _malformed(detail: str) -> Interpretation:
    return Interpretation(InterpretationKind.MALFORMED, detail=detail)


def interpret_response(body: str) -> Interpretation:
    try:
        data: Any = json.loads(body)
    except (TypeError, ValueError) as e:
        return _malformed(f"invalid JSON: {e}")
    if not isinstance(data, dict):
        return _malformed(f"expected an object, got {type(data).__name__}")

    try:
        if data.get("errors") is not None:
            err = RateLimitedBody.model_validate(data).errors[0]
            return Interpretation(
                InterpretationKind.RATE_LIMITED,
                next_available_ms=err.extensions.next_available_pixel_ts,
                detail=err.message or "",
            )
        placed = PlacedBody.model_validate(data)
    except ValidationError as e:
        return _malformed(f"unexpected shape ({e.error_count()} errors)")
    cooldown = placed.data.act.data[0].data
    return Interpretation(
        InterpretationKind.PLACED,
        next_available_ms=cooldown.next_available_pixel_timestamp,
    )

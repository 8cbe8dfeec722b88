"""Base model and enum for lifecycle values.

Every lifecycle model inherits from :class:`PwaBaseModel`, a frozen
pydantic model: snapshots are recomputed, never mutated.

Enums inherit from :class:`PwaEnum`, a string enum whose ``_missing_``
hook resolves values the platform reports without a mapped member
(e.g. a new ``effectiveType``) to ``UNKNOWN`` instead of raising.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class PwaEnum(StrEnum):
    """Base for platform-reported string enums.

    Subclasses that define ``UNKNOWN`` get it for unmapped values;
    otherwise lookup raises ``ValueError`` as usual.
    """

    @classmethod
    def _missing_(cls, value: object) -> PwaEnum | None:
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        if "UNKNOWN" in cls.__members__:
            unknown: PwaEnum = cls.__members__["UNKNOWN"]
            return unknown
        return None


class PwaBaseModel(BaseModel):
    """Base for immutable lifecycle values."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

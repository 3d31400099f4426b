"""
services/profile_patch.py — Typed partial update for a user profile.

Each field is either UNSET (absent from the request, left untouched) or
carries the new value. None is a real value: for phone, disabled_reason and
profile_image_url it clears the column.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping


class _Unset:

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class ProfilePatch:
    first_name: Any = UNSET
    last_name: Any = UNSET
    email: Any = UNSET
    phone: Any = UNSET
    password: Any = UNSET
    language: Any = UNSET
    default_currency: Any = UNSET
    is_member: Any = UNSET
    status: Any = UNSET
    disabled_reason: Any = UNSET
    profile_image_url: Any = UNSET

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProfilePatch":
        """Builds a patch from validated request data; unknown keys are ignored."""
        return cls(**{f.name: data[f.name] for f in fields(cls) if f.name in data})

    def present(self) -> dict[str, Any]:
        """Fields carried by this patch, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def __contains__(self, name: str) -> bool:
        return getattr(self, name, UNSET) is not UNSET

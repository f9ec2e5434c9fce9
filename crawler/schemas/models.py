"""
Pydantic models for raw feed records.
These carry only what the lifecycle engine needs: title, snippet, heat and link.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class RawFeedRecord(BaseModel):
    source: str
    title: str
    description: str = ""
    heat: Optional[int] = None
    link: Optional[str] = None
    published_at: Optional[datetime] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("heat", mode="before")
    @classmethod
    def _coerce_heat(cls, value: object) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return max(int(value), 0)
        except (TypeError, ValueError):
            return None

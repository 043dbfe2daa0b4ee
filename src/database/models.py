"""
Dicekeeper - Database Models

Pydantic models that mirror the Supabase table schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class CharacterAttribute(BaseModel):
    """Mirrors the `character_attributes` table."""

    card_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=32)
    value: int
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class InitiativeRecord(BaseModel):
    """Mirrors the `initiative_state` table. ``data`` is opaque to this layer."""

    channel_id: str = Field(min_length=1)
    data: str
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

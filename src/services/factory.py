"""
Dicekeeper - Service Factory

Builds the services from settings, choosing Supabase-backed stores when
credentials are configured and in-memory stores otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.config.settings import Settings, get_settings
from src.database.character_store import (
    CharacterAttributeManager,
    CharacterStore,
    InMemoryCharacterStore,
)
from src.database.client import get_supabase_client
from src.database.initiative_store import BlobStore, InitiativeStateManager, InMemoryBlobStore
from src.engine.dice import DiceRoller, RandomSource
from src.services.attribute_service import AttributeService
from src.services.initiative_service import InitiativeService
from src.services.roll_service import RollService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    """The three service hosts sharing one store pair and random source."""
    attributes: AttributeService
    rolls: RollService
    initiative: InitiativeService


def build_services(
    settings: Settings | None = None,
    source: RandomSource | None = None,
) -> Services:
    """Wire stores, random source and services from settings."""
    settings = settings or get_settings()
    source = source or DiceRoller()

    character_store: CharacterStore
    blob_store: BlobStore
    if settings.use_supabase:
        client = get_supabase_client()
        character_store = CharacterAttributeManager(client)
        blob_store = InitiativeStateManager(client)
        logger.info("Using Supabase stores")
    else:
        character_store = InMemoryCharacterStore()
        blob_store = InMemoryBlobStore()
        logger.info("Supabase not configured; using in-memory stores")

    return Services(
        attributes=AttributeService(
            character_store, source, max_attributes=settings.max_attributes_per_card
        ),
        rolls=RollService(
            character_store,
            source,
            rule=settings.coc_rule,
            max_attributes=settings.max_attributes_per_card,
        ),
        initiative=InitiativeService(blob_store, source),
    )

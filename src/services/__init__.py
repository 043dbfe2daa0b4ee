"""
Dicekeeper Services.

Hosts that combine the engine with the character and initiative stores.
"""

from src.services.attribute_service import AppliedChange, AppliedDirectives, AttributeService
from src.services.factory import Services, build_services
from src.services.initiative_service import InitiativeService
from src.services.roll_service import RollService

__all__ = [
    "AppliedChange",
    "AppliedDirectives",
    "AttributeService",
    "InitiativeService",
    "RollService",
    "Services",
    "build_services",
]

"""Core domain models, events, and services."""

from diffview.core import events
from diffview.core.models import entities, enums

__all__ = [
    "entities",
    "enums",
    "events",
]

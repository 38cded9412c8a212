"""EpisodeMatch GUI adapters."""
from .confirmation import QtConfirmationChannel

__all__ = [
    "QtConfirmationChannel",
]

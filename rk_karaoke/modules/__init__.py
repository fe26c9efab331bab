"""Modules package for the karaoke engine."""
from .base import Module
from .karaoke import KaraokeModule

__all__ = [
    "Module",
    "KaraokeModule",
]

"""Persistence for dadcontrol: engine state and enforcement history."""

from dadcontrol.storage.db import HistoryStore
from dadcontrol.storage.state import StateStore

__all__ = [
    "HistoryStore",
    "StateStore",
]

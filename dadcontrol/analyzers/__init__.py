"""Usage accounting for observed activities."""

from dadcontrol.analyzers.usage import ActivityUsage

__all__ = [
    "ActivityUsage",
]

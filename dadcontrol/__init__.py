"""dadcontrol - per-activity usage policy enforcement for a single host."""

__version__ = "0.1.0"

"""CLI helpers exposed for other modules."""

from .ui import PhaseTracker, StepTracker

__all__ = ["PhaseTracker", "StepTracker"]

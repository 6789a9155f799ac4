"""Service layer for the test healing engine."""

from .healing_service import HealingOrchestrator

__all__ = ["HealingOrchestrator"]

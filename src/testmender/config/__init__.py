"""Configuration for the test healing engine."""

from .healing_config import HealingConfig

__all__ = ["HealingConfig"]

"""testmender - automatic diagnosis and healing of broken generated tests."""

__version__ = "0.1.0"

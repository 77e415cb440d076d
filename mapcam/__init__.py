"""First-person map camera controller with an overhead minimap."""

__version__ = "0.1.0"

"""Generation of versioned case documents."""

from casework.services.generation.generator import DocumentGenerator

__all__ = ["DocumentGenerator"]

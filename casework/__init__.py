"""Case document pipeline: intake, extraction, aggregation and generation."""

__version__ = "0.1.0"

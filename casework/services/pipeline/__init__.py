"""Pipeline coordination across documents, aggregation and generation."""

from casework.services.pipeline.coordinator import PipelineCoordinator
from casework.services.pipeline.scheduler import AggregationScheduler

__all__ = ["AggregationScheduler", "PipelineCoordinator"]

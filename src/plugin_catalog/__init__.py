"""Plugin catalog aggregation, ranking and snapshot service."""

__version__ = "0.1.0"

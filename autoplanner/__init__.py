"""AutoPlanner: automatic scheduling engine for personal tasks."""

__version__ = "0.1.0"

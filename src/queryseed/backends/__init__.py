"""Execution sinks for generated INSERT statements."""

from queryseed.backends.direct import DirectBackend
from queryseed.backends.staging import StagingBackend

__all__ = ["DirectBackend", "StagingBackend"]

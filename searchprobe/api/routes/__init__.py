"""API route modules."""

from . import batches, probes, scheduler

__all__ = ["batches", "probes", "scheduler"]

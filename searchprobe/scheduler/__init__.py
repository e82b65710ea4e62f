"""Scheduler module - batch queue processing."""

from .batch import BatchScheduler, ProbeRunner

__all__ = [
    "BatchScheduler",
    "ProbeRunner",
]

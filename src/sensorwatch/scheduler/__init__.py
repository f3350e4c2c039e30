"""Sweep triggers."""

from sensorwatch.scheduler.sweep_scheduler import SweepScheduler

__all__ = ["SweepScheduler"]

"""Background jobs."""

from .reconciliation import register_scheduler, run_sweep_once

__all__ = ["register_scheduler", "run_sweep_once"]

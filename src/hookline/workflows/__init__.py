"""Background workflows for Hookline."""

from .secret_sweep import SecretSweepResult, run_periodic_secret_sweep, run_secret_sweep

__all__ = ["SecretSweepResult", "run_periodic_secret_sweep", "run_secret_sweep"]

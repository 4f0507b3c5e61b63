"""multigait: quadruped locomotion environment for policy training."""

from __future__ import annotations

__version__ = "0.1.0"

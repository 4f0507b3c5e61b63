"""Physics engine contract and the MuJoCo-backed implementation."""

from __future__ import annotations

from .engine import ContactRecord, ControlMode, PhysicsEngine

__all__ = ["ContactRecord", "ControlMode", "PhysicsEngine"]

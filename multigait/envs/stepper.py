from __future__ import annotations

from contextlib import nullcontext
from typing import ContextManager, Optional

from multigait.contract.action import PdTarget
from multigait.sim_adapter.engine import PhysicsEngine


def fine_step_count(control_dt: float, simulation_dt: float) -> int:
    """Number of physics sub-steps per control step (epsilon-guarded truncation)."""
    if simulation_dt <= 0.0:
        raise ValueError(f"simulation_dt must be positive, got {simulation_dt}")
    count = int(control_dt / simulation_dt + 1e-10)
    if count < 1:
        raise ValueError(
            f"control_dt ({control_dt}) is shorter than simulation_dt ({simulation_dt})"
        )
    return count


class SimulationStepper:
    """Advances the engine by one control interval.

    The PD target is set once, then ``engine.integrate()`` runs
    ``fine_step_count`` times. When a lock is attached (the viewer mutex),
    each integrate call is made inside ``with lock:``. Engine errors are not
    caught.
    """

    def __init__(
        self,
        engine: PhysicsEngine,
        *,
        control_dt: float,
        simulation_dt: float,
        lock: Optional[ContextManager] = None,
    ) -> None:
        self._engine = engine
        self._lock = lock
        self.control_dt = float(control_dt)
        self.simulation_dt = float(simulation_dt)
        self.n_substeps = fine_step_count(self.control_dt, self.simulation_dt)
        self._engine.set_time_step(self.simulation_dt)

    @property
    def lock(self) -> Optional[ContextManager]:
        return self._lock

    def attach_lock(self, lock: ContextManager) -> None:
        self._lock = lock

    def detach_lock(self) -> None:
        self._lock = None

    def set_time_steps(
        self,
        *,
        control_dt: Optional[float] = None,
        simulation_dt: Optional[float] = None,
    ) -> None:
        new_control_dt = self.control_dt if control_dt is None else float(control_dt)
        new_simulation_dt = self.simulation_dt if simulation_dt is None else float(simulation_dt)
        n_substeps = fine_step_count(new_control_dt, new_simulation_dt)

        self.control_dt = new_control_dt
        self.simulation_dt = new_simulation_dt
        self.n_substeps = n_substeps
        self._engine.set_time_step(self.simulation_dt)

    def advance(self, target: PdTarget) -> None:
        self._engine.set_pd_target(target.position, target.velocity)
        for _ in range(self.n_substeps):
            with self._lock if self._lock is not None else nullcontext():
                self._engine.integrate()

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..core.listeners import Listeners, Subscription
from ..schemas import SessionStateView

logger = logging.getLogger("wokai.session")


class Provenance(str, Enum):
    USER = "user"
    AGENT = "agent"


@dataclass(frozen=True)
class StepChange:
    previous_index: int
    index: int
    total_steps: int
    provenance: Provenance
    completed: bool  # whether the new step is already marked complete


class SessionStateStore:
    """Authoritative step cursor for one cooking session.

    ``current_step_index`` is always within ``[0, total_steps)``. Every
    ``set_step`` call emits a ``StepChange``, including re-setting the current
    step, since re-announcing the current step is a valid request.
    """

    def __init__(self, total_steps: int, *, start_index: int = 0):
        if total_steps < 1:
            raise ValueError("A cooking session needs at least one step")
        self.total_steps = total_steps
        self._current = self._clamp(start_index)
        self._completed: set[int] = set()
        self._changes: Listeners[StepChange] = Listeners("session.step_change")

    @property
    def current_step_index(self) -> int:
        return self._current

    @property
    def completed_steps(self) -> frozenset[int]:
        return frozenset(self._completed)

    def is_completed(self, index: int) -> bool:
        return index in self._completed

    def on_step_change(self, listener: Callable[[StepChange], None]) -> Subscription:
        return self._changes.subscribe(listener)

    def set_step(self, index: int, *, provenance: Provenance = Provenance.USER) -> StepChange:
        target = self._clamp(index)
        if target != index:
            logger.warning(f"Step index {index} clamped to {target}")

        change = StepChange(
            previous_index=self._current,
            index=target,
            total_steps=self.total_steps,
            provenance=provenance,
            completed=target in self._completed,
        )
        self._current = target
        logger.debug(f"Step {change.previous_index} -> {target} ({provenance.value})")
        self._changes.emit(change)
        return change

    def toggle_completed(self, index: int) -> bool:
        """Flip completion of ``index``; returns the new membership.

        Out-of-range indexes are ignored.
        """
        if not 0 <= index < self.total_steps:
            return False
        if index in self._completed:
            self._completed.discard(index)
            return False
        self._completed.add(index)
        return True

    def snapshot(self) -> SessionStateView:
        return SessionStateView(
            current_step_index=self._current,
            total_steps=self.total_steps,
            completed_steps=sorted(self._completed),
        )

    def close(self) -> None:
        self._changes.clear()

    def _clamp(self, index: int) -> int:
        return max(0, min(index, self.total_steps - 1))

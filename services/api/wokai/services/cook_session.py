"""Cook session wiring and the per-application session registry.

A ``CookSession`` owns one store, one timer registry, one agent bridge and
one reconciler for a loaded recipe. ``SessionManager`` owns the live
sessions; it is created by the application factory and closed on shutdown.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.listeners import Listeners, Subscription
from ..realtime.agent_channel import AgentChannel
from ..schemas import RecipeStructure, SessionSnapshot, TimerCompletion, TimerView, ToolDefinition
from .agent_bridge import AgentBridge
from .agent_context import build_agent_prompt, build_first_message
from .reconciliation import Reconciler
from .session_state import Provenance, SessionStateStore, StepChange
from .timer_registry import TimerRegistry

logger = logging.getLogger("wokai.cook")


class SessionNotFound(LookupError):
    pass


class CookSession:
    def __init__(
        self,
        recipe: RecipeStructure,
        *,
        session_id: Optional[str] = None,
        tick_seconds: float = 1.0,
        auto_tick: bool = True,
        history_limit: int = 50,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.recipe = recipe
        self.started_at = datetime.now(timezone.utc)
        self.store = SessionStateStore(len(recipe.steps))
        self.timers = TimerRegistry(tick_seconds=tick_seconds, auto_tick=auto_tick)
        self.bridge = AgentBridge(self.store, self.timers, recipe.steps, history_limit=history_limit)
        self.reconciler = Reconciler(recipe.steps)
        self._updated: Listeners[str] = Listeners("session.updated")
        self._timer_completed: Listeners[TimerCompletion] = Listeners("session.timer_complete")
        self._subscriptions: list[Subscription] = [
            self.store.on_step_change(self.reconciler.observe),
            self.store.on_step_change(lambda _change: self._touch()),
            self.timers.on_update(lambda _timers: self._touch()),
            self.timers.on_complete(self._timer_finished),
        ]
        self.closed = False

    # --- Observers ---

    def on_updated(self, listener: Callable[[str], None]) -> Subscription:
        """Called with the session id after any state or timer change."""
        return self._updated.subscribe(listener)

    def on_timer_complete(self, listener: Callable[[TimerCompletion], None]) -> Subscription:
        """Called once per timer that counts down to zero. Cancelled timers never report."""
        return self._timer_completed.subscribe(listener)

    def _touch(self) -> None:
        self._updated.emit(self.id)

    def _timer_finished(self, timer: TimerView) -> None:
        self._timer_completed.emit(TimerCompletion(session_id=self.id, timer=timer))

    # --- User navigation (provenance: user) ---

    def _in_range(self, index: int) -> bool:
        if 0 <= index < self.store.total_steps:
            return True
        logger.info(f"Session {self.id}: ignoring step index {index} outside 0..{self.store.total_steps - 1}")
        return False

    def go_to_step(self, index: int) -> Optional[StepChange]:
        """Move to ``index``; an out-of-range index changes nothing and returns None."""
        if not self._in_range(index):
            return None
        return self.store.set_step(index, provenance=Provenance.USER)

    def next_step(self) -> Optional[StepChange]:
        current = self.store.current_step_index
        if current >= self.store.total_steps - 1:
            return None
        return self.store.set_step(current + 1, provenance=Provenance.USER)

    def previous_step(self) -> Optional[StepChange]:
        current = self.store.current_step_index
        if current <= 0:
            return None
        return self.store.set_step(current - 1, provenance=Provenance.USER)

    def toggle_completed(self, index: int) -> Optional[bool]:
        if not self._in_range(index):
            return None
        completed = self.store.toggle_completed(index)
        self._touch()
        return completed

    # --- Agent channel ---

    def attach_agent(self, channel: AgentChannel) -> dict:
        """Attach ``channel`` and return its initiation frame."""
        self.reconciler.attach(channel)
        logger.info(f"Agent connected to session {self.id}")
        self._touch()
        current = self.store.current_step_index
        return {
            "type": "conversation_initiation",
            "session_id": self.id,
            "prompt": build_agent_prompt(self.recipe, current),
            "first_message": build_first_message(self.recipe, current),
            "tools": [t.model_dump() for t in self.tool_definitions()],
        }

    def detach_agent(self, channel: Optional[AgentChannel] = None) -> None:
        self.reconciler.detach(channel)
        logger.info(f"Agent disconnected from session {self.id}")
        if not self.closed:
            self._touch()

    def tool_definitions(self) -> list[ToolDefinition]:
        return self.bridge.tool_definitions()

    def invoke_tool(self, name: str, arguments=None) -> str:
        return self.bridge.invoke(name, arguments)

    # --- Views / lifecycle ---

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            title=self.recipe.title,
            steps=self.recipe.steps,
            state=self.store.snapshot(),
            timers=self.timers.list_timers(),
            reconciliation=self.reconciler.stats.model_copy(),
            agent_connected=self.reconciler.connected,
            recent_tool_calls=self.bridge.recent_calls(),
            started_at=self.started_at,
        )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for sub in self._subscriptions:
            sub.unsubscribe()
        self.timers.cleanup()
        self.store.close()
        self.reconciler.detach()
        self._updated.clear()
        self._timer_completed.clear()
        logger.info(f"Closed cook session {self.id}")


class SessionManager:
    def __init__(
        self,
        *,
        tick_seconds: float = 1.0,
        auto_tick: bool = True,
        history_limit: int = 50,
        on_updated: Optional[Callable[[str], None]] = None,
        on_timer_complete: Optional[Callable[[TimerCompletion], None]] = None,
    ):
        self.tick_seconds = tick_seconds
        self.auto_tick = auto_tick
        self.history_limit = history_limit
        self.on_updated = on_updated
        self.on_timer_complete = on_timer_complete
        self._sessions: dict[str, CookSession] = {}

    def start(self, recipe: RecipeStructure) -> CookSession:
        session = CookSession(
            recipe,
            tick_seconds=self.tick_seconds,
            auto_tick=self.auto_tick,
            history_limit=self.history_limit,
        )
        if self.on_updated is not None:
            session.on_updated(self.on_updated)
        if self.on_timer_complete is not None:
            session.on_timer_complete(self.on_timer_complete)
        self._sessions[session.id] = session
        logger.info(f"Started cook session {session.id} for '{recipe.title}' ({len(recipe.steps)} steps)")
        return session

    def get(self, session_id: str) -> CookSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def end(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(session_id)
        session.close()

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            session.close()
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

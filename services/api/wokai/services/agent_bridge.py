"""Tools the remote conversational agent can call during a cooking session.

Each tool validates its arguments against a single strict shape, reads the
live session state at call time, and answers with a sentence the agent can
speak back. Tools never raise: failures are answers too.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Type

from pydantic import BaseModel, ValidationError

from ..schemas import JumpArgs, NoToolArgs, StartTimerArgs, ToolCallRecord, ToolDefinition
from .session_state import Provenance, SessionStateStore
from .timer_registry import InvalidTimerDuration, TimerRegistry

logger = logging.getLogger("wokai.bridge")


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_model: Type[BaseModel]
    expected: str  # human description of the accepted argument shape
    handler: Callable[[BaseModel], tuple[str, bool]]


def format_minutes(minutes: float) -> str:
    if float(minutes).is_integer():
        minutes = int(minutes)
    unit = "minute" if minutes == 1 else "minutes"
    return f"{minutes} {unit}"


class AgentBridge:
    def __init__(
        self,
        store: SessionStateStore,
        timers: TimerRegistry,
        steps: list[str],
        *,
        history_limit: int = 50,
    ):
        if len(steps) != store.total_steps:
            raise ValueError("Step texts do not match the session's step count")
        self.store = store
        self.timers = timers
        self.steps = steps
        self.history: deque[ToolCallRecord] = deque(maxlen=history_limit)
        self._tools: dict[str, Tool] = {
            t.name: t
            for t in (
                Tool("advance", "Move to the next recipe step.", NoToolArgs, "no arguments", self._advance),
                Tool("retreat", "Go back to the previous recipe step.", NoToolArgs, "no arguments", self._retreat),
                Tool("repeat", "Repeat the current recipe step.", NoToolArgs, "no arguments", self._repeat),
                Tool(
                    "jump",
                    "Go to a specific recipe step by its 1-based number.",
                    JumpArgs,
                    'an object {"step": <whole number>}',
                    self._jump,
                ),
                Tool(
                    "startTimer",
                    "Start a countdown timer for the current step.",
                    StartTimerArgs,
                    'an object {"minutes": <number>}',
                    self._start_timer,
                ),
            )
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def tool_definitions(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(name=t.name, description=t.description, parameters=t.args_model.model_json_schema())
            for t in self._tools.values()
        ]

    def invoke(self, name: str, arguments: Any = None) -> str:
        """Run tool ``name`` and return its spoken outcome."""
        tool = self._tools.get(name)
        if tool is None:
            result = f"Unknown tool '{name}'. Available tools are {', '.join(self._tools)}."
            return self._record(name, arguments, result, ok=False)

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return self._record(name, arguments, self._invalid(tool), ok=False)
        try:
            args = tool.args_model.model_validate(arguments)
        except ValidationError as e:
            logger.info(f"Rejected {name} arguments {arguments!r}: {e.error_count()} error(s)")
            return self._record(name, arguments, self._invalid(tool), ok=False)

        try:
            result, ok = tool.handler(args)
        except Exception:
            logger.exception(f"Tool {name} failed")
            result, ok = f"Sorry, I couldn't run {name} just now.", False
        return self._record(name, arguments, result, ok=ok)

    # --- Tools ---

    def _advance(self, _args: NoToolArgs):
        current = self.store.current_step_index
        if current >= self.store.total_steps - 1:
            return f"Already at the last step, step {current + 1} of {self.store.total_steps}.", False
        change = self.store.set_step(current + 1, provenance=Provenance.AGENT)
        return f"Moved to step {self._describe(change.index)}", True

    def _retreat(self, _args: NoToolArgs):
        current = self.store.current_step_index
        if current <= 0:
            return "Already at the first step.", False
        change = self.store.set_step(current - 1, provenance=Provenance.AGENT)
        return f"Went back to step {self._describe(change.index)}", True

    def _repeat(self, _args: NoToolArgs):
        change = self.store.set_step(self.store.current_step_index, provenance=Provenance.AGENT)
        return f"Step {self._describe(change.index)}", True

    def _jump(self, args: JumpArgs):
        total = self.store.total_steps
        if not 1 <= args.step <= total:
            return f"Step {args.step} does not exist, valid steps are 1 to {total}.", False
        change = self.store.set_step(args.step - 1, provenance=Provenance.AGENT)
        return f"Jumped to step {self._describe(change.index)}", True

    def _start_timer(self, args: StartTimerArgs):
        step_number = self.store.current_step_index + 1
        try:
            self.timers.create(f"Step {step_number}", args.minutes)
        except InvalidTimerDuration as e:
            return f"Cannot set a timer for {format_minutes(args.minutes)}, {e}.", False
        return f"Timer set for {format_minutes(args.minutes)}.", True

    # --- Helpers ---

    def _describe(self, index: int) -> str:
        return f"{index + 1} of {self.store.total_steps}: {self.steps[index]}"

    def _invalid(self, tool: Tool) -> str:
        return f"Invalid arguments for {tool.name}: expected {tool.expected}."

    def _record(self, name: str, arguments: Any, result: str, *, ok: bool) -> str:
        self.history.append(
            ToolCallRecord(
                name=name,
                arguments=arguments if isinstance(arguments, dict) else {"value": arguments},
                result=result,
                ok=ok,
                called_at=datetime.now(timezone.utc),
            )
        )
        logger.info(f"Tool {name} -> {result}")
        return result

    def recent_calls(self, limit: Optional[int] = None) -> list[ToolCallRecord]:
        calls = list(self.history)
        return calls[-limit:] if limit else calls

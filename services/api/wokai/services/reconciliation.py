"""Keeps the remote agent informed of step changes it did not cause.

Every step change is observed here exactly once. Changes the agent made
through a tool are not echoed back (it already has the tool's answer).
Changes made by the user on screen produce exactly one notice telling the
agent to read the new step aloud and not to navigate in response, which is
what stops the agent from re-triggering the change it is being told about.

Notices are fire-and-forget: with no open channel they are dropped and never
replayed. A later connection is brought up to date by its initiation context.
"""

import logging
from typing import Optional

from ..realtime.agent_channel import AgentChannel
from ..schemas import ReconciliationStats
from .session_state import Provenance, StepChange

logger = logging.getLogger("wokai.reconcile")

NAVIGATION_TOOLS = ("advance", "retreat", "repeat", "jump")


def build_step_change_notice(change: StepChange, step_text: str) -> str:
    step_number = change.index + 1
    parts = [
        f"The user moved to step {step_number} of {change.total_steps} using the on-screen controls.",
        f"The session is already on step {step_number}, so do not call {', '.join(NAVIGATION_TOOLS)} "
        "or any other navigation tool in response to this message.",
        f'Read this step aloud to the user now: "{step_text}"',
    ]
    if change.completed:
        parts.append("The user has already marked this step as completed, so treat it as a review.")
    return " ".join(parts)


class Reconciler:
    def __init__(self, steps: list[str]):
        self.steps = steps
        self.channel: Optional[AgentChannel] = None
        self.stats = ReconciliationStats()

    def attach(self, channel: AgentChannel) -> None:
        self.channel = channel

    def detach(self, channel: Optional[AgentChannel] = None) -> None:
        # Only detach the given channel if a newer one has not replaced it
        if channel is None or channel is self.channel:
            self.channel = None

    @property
    def connected(self) -> bool:
        return self.channel is not None and self.channel.is_open

    def observe(self, change: StepChange) -> Optional[str]:
        """Handle one step change; returns the notice sent, if any."""
        if change.provenance is Provenance.AGENT:
            return None

        notice = build_step_change_notice(change, self.steps[change.index])
        if not self.connected:
            self.stats.dropped += 1
            logger.info(f"No agent connected, dropped notice for step {change.index + 1}")
            return None

        self.channel.send_contextual_update(notice)
        self.stats.sent += 1
        logger.info(f"Sent step {change.index + 1} notice to agent")
        return notice

"""Pydantic schemas for the Wok.AI cook session API.

Request/response models for:
- Structured recipes (the contract of the recipe structuring service)
- Timers and session state views
- Agent tool arguments and invocation records
- Agent WebSocket frames
"""

from datetime import datetime
from typing import Annotated, Optional, Literal, Union, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


# --- Structured Recipe ---

class RecipeTiming(BaseModel):
    prep: Optional[float] = Field(None, ge=0)
    cook: Optional[float] = Field(None, ge=0)
    total: Optional[float] = Field(None, ge=0)


class RecipeStructure(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    ingredients: list[str] = Field(..., min_length=1)
    steps: list[str] = Field(..., min_length=1)
    timing: Optional[RecipeTiming] = None
    techniques: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("ingredients", "steps")
    @classmethod
    def _entries_not_blank(cls, v: list[str]) -> list[str]:
        cleaned = [s.strip() for s in v]
        if any(not s for s in cleaned):
            raise ValueError("entries must not be blank")
        return cleaned


# --- Timers ---

class TimerView(BaseModel):
    id: str
    label: str
    duration: int  # seconds
    remaining: int  # seconds
    is_active: bool
    is_paused: bool


class TimerCreateRequest(BaseModel):
    label: str = Field(..., min_length=1, max_length=100)
    minutes: float = Field(..., gt=0, allow_inf_nan=False)


# --- Session State ---

class SessionStateView(BaseModel):
    current_step_index: int
    total_steps: int
    completed_steps: list[int]


class StepSetRequest(BaseModel):
    step_index: int


class SessionStartRequest(BaseModel):
    recipe: RecipeStructure


# --- Agent Tools ---

class NoToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")


class JumpArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step: StrictInt


class StartTimerArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    minutes: Union[StrictInt, Annotated[float, Field(strict=True, allow_inf_nan=False)]]


class ToolCallRecord(BaseModel):
    name: str
    arguments: dict[str, Any]
    result: str
    ok: bool
    called_at: datetime


class ToolResultResponse(BaseModel):
    result: str


class ToolDefinition(BaseModel):
    name: str
    description: str
    parameters: dict[str, Any]


# --- Session Snapshot ---

class ReconciliationStats(BaseModel):
    sent: int = 0
    dropped: int = 0


class TimerCompletion(BaseModel):
    session_id: str
    timer: TimerView


class SessionSnapshot(BaseModel):
    id: str
    title: str
    steps: list[str]
    state: SessionStateView
    timers: list[TimerView]
    reconciliation: ReconciliationStats
    agent_connected: bool
    recent_tool_calls: list[ToolCallRecord]
    started_at: datetime


# --- Agent WebSocket frames ---

class ClientToolCall(BaseModel):
    type: Literal["client_tool_call"]
    tool_call_id: str = Field(..., min_length=1)
    tool_name: str = Field(..., min_length=1)
    parameters: Any = None


class PingFrame(BaseModel):
    type: Literal["ping"]
    event_id: Optional[Union[int, str]] = None


# --- Recipe structuring / conversation ---

class StructureRecipeRequest(BaseModel):
    transcript: str = Field(..., min_length=1)


class SignedUrlResponse(BaseModel):
    signed_url: str

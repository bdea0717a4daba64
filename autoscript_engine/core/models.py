"""Data models for scripts, executions and their results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UTC = timezone.utc

ExecutionStatus = Literal["running", "completed", "failed"]
TERMINAL_STATUSES = frozenset({"completed", "failed"})


def utc_now() -> datetime:
    return datetime.now(UTC)


def timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""

    return utc_now().isoformat()


class ActionType(str, Enum):
    """Browser actions a step can request."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    SCREENSHOT = "screenshot"
    EXTRACT_TEXT = "extract_text"
    EXTRACT_ATTRIBUTE = "extract_attribute"
    SCROLL = "scroll"
    SELECT_DROPDOWN = "select_dropdown"

    @classmethod
    def parse(cls, value: str) -> Optional["ActionType"]:
        try:
            return cls(value)
        except ValueError:
            return None


SelectorType = Literal["css", "xpath", "id", "class", "text"]


class ApiModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AutomationStep(ApiModel):
    """One declarative browser action. Immutable once a run starts."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    action: str
    selector: Optional[str] = None
    selector_type: Optional[SelectorType] = None
    value: Optional[str] = None
    wait_time: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None

    @field_validator("id", "action")
    @classmethod
    def _validate_required_text(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @property
    def action_type(self) -> Optional[ActionType]:
        """Known action for this step, ``None`` for unsupported actions."""

        return ActionType.parse(self.action.lower())


class Script(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    steps: List[AutomationStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class StepResult(ApiModel):
    """Outcome of one attempted step."""

    step_id: str
    action: str
    description: Optional[str] = None
    success: bool
    screenshot: Optional[str] = None
    screenshot_id: Optional[int] = None
    extracted_data: Optional[Any] = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=timestamp)


class ExecutionResult(ApiModel):
    """Aggregate of a run: screenshots, extracted values, log lines and per-step outcomes."""

    success: bool = True
    screenshots: List[str] = Field(default_factory=list)
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    step_results: List[StepResult] = Field(default_factory=list)
    error: Optional[str] = None


class Execution(ApiModel):
    id: int
    script_id: int
    status: ExecutionStatus = "running"
    result: Optional[ExecutionResult] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ExecutionStarted(ApiModel):
    execution_id: int
    status: Literal["running"] = "running"


class ScreenshotRecord(ApiModel):
    """Stored screenshot row. ``data`` never appears in serialised payloads."""

    id: int
    execution_id: int
    step_number: int
    filename: str
    content_type: str = "image/png"
    data: bytes = Field(default=b"", exclude=True, repr=False)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def url(self) -> str:
        return f"/screenshots/{self.id}"


class ScriptScreenshot(ScreenshotRecord):
    """Screenshot row joined with the script its execution ran."""

    script_id: int
    script_name: str


class ScreenshotRef(ApiModel):
    """Stable reference produced by the screenshot persistence chain."""

    reference: str
    filename: str
    step_number: int
    screenshot_id: Optional[int] = None
    sink: str

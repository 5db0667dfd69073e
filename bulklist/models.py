from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

# Delay choices offered to users, in milliseconds.
DELAY_CHOICES_MS = (5000, 10000, 15000, 30000)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class WorkItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    annotation: str = ""

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must not be empty")
        return value


class AddedItem(BaseModel):
    """What the add mutation hands back for one item."""
    remote_item_id: Optional[str] = None
    display_label: Optional[str] = None


class ItemOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    index: int
    succeeded: bool
    failure_reason: Optional[str] = None
    display_label: str
    warning: Optional[str] = None  # set when the add worked but the description did not


class BatchReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcomes: List[ItemOutcome] = []
    cancelled: bool = False

    @computed_field
    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    def summary(self) -> str:
        if self.cancelled:
            return f"Upload cancelled. {self.succeeded} added, {self.failed} failed."
        return f"Upload complete! {self.succeeded} added, {self.failed} failed."


class DelayPolicy(BaseModel):
    enabled: bool = False
    interval_ms: int = Field(default=0, ge=0)

    @property
    def seconds(self) -> float:
        return self.interval_ms / 1000.0

    @classmethod
    def from_seconds(cls, seconds: Optional[float]) -> "DelayPolicy":
        """Build a policy from a CLI-style seconds value; None or 0 disables it."""
        if not seconds:
            return cls()
        return cls(enabled=True, interval_ms=int(round(seconds * 1000)))


# -- service envelopes --------------------------------------------------------

class ParseRequest(BaseModel):
    text: str


class ParseResponse(BaseModel):
    count: int
    items: List[WorkItem] = []


class RunRequest(BaseModel):
    text: str
    list_id: Optional[str] = None
    location: Optional[str] = None  # page URL or path to pull the list id from
    delay: DelayPolicy = DelayPolicy()


class RunStatusResponse(BaseModel):
    run_id: str
    state: RunState
    done: int = 0
    total: int = 0
    outcomes: List[ItemOutcome] = []
    report: Optional[BatchReport] = None
    error: Optional[str] = None

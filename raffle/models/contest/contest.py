from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ContestStatus(str, Enum):
    """
    Contest status types - State Machine

    State Transitions:
    - ACTIVE -> ENDED (operator stops the contest, or a newer contest replaces it)
    - ENDED -> COMPLETED (winners drawn)
    - ACTIVE -> COMPLETED (winners drawn, only once submissions_stopped is set)

    COMPLETED is terminal. Closing submissions (submissions_stopped) is a flag,
    not a status: a naturally expired contest stays ACTIVE until it is drawn.
    """
    ACTIVE = "active"  # Accepting submissions unless submissions_stopped
    ENDED = "ended"  # Closed by an operator or replaced, waiting for a draw
    COMPLETED = "completed"  # Winners drawn


class ContestType(str, Enum):
    """How a contest ends naturally"""
    DURATION = "duration"  # Ends when duration_minutes have elapsed
    PARTICIPANTS = "participants"  # Ends when max_participants have submitted


class StopReason(str, Enum):
    """Why submissions were closed"""
    MANUAL = "manual"
    EXPIRED = "expired"
    CONTEST_STOPPED = "contest_stopped"


# Only this value ever lives in contests.active_slot (unique sparse index)
ACTIVE_SLOT = "current"


class ContestCreate(BaseModel):
    """Schema for creating a contest"""
    prize_amount: Decimal = Field(..., gt=0, description="Prize paid to each winner")
    contest_type: ContestType
    duration_minutes: Optional[int] = Field(None, gt=0)
    max_participants: Optional[int] = Field(None, gt=0)
    winner_count: int = Field(1, gt=0)

    @model_validator(mode="after")
    def check_end_condition(self):
        """Each contest type needs exactly its own end condition"""
        if self.contest_type == ContestType.DURATION:
            if self.duration_minutes is None:
                raise ValueError("duration_minutes is required for duration contests")
            self.max_participants = None
        else:
            if self.max_participants is None:
                raise ValueError("max_participants is required for participant contests")
            self.duration_minutes = None
        return self


class ContestInDB(BaseModel):
    """Schema for contest stored in database"""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    prize_amount: str  # Decimal as string, never float
    contest_type: ContestType
    duration_minutes: Optional[int] = None
    max_participants: Optional[int] = None
    winner_count: int = 1
    status: ContestStatus = ContestStatus.ACTIVE

    # Lifecycle
    active_slot: Optional[str] = ACTIVE_SLOT
    manually_stopped: bool = False
    submissions_stopped: bool = False
    submissions_stopped_at: Optional[datetime] = None
    stop_reason: Optional[StopReason] = None
    winner_draw_claimed: bool = False

    # Timestamps
    start_time: datetime
    end_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    ended_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

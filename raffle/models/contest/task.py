from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class TaskType(str, Enum):
    """Kinds of promotional tasks a participant can be asked to do"""
    FOLLOW_TWITTER = "follow_twitter"
    RETWEET = "retweet"
    JOIN_DISCORD = "join_discord"
    JOIN_TELEGRAM = "join_telegram"
    VISIT_URL = "visit_url"
    CUSTOM = "custom"


class TaskCreate(BaseModel):
    """Schema for adding a task to a contest"""
    task_type: TaskType = TaskType.CUSTOM
    description: str = Field(..., min_length=3, max_length=300)
    url: Optional[str] = Field(None, max_length=500)
    is_required: bool = True

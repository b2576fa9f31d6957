"""
Database Schemas for Distracto

Each Pydantic model corresponds to a MongoDB collection (lowercased class name).
- User -> "user"
- ScreenTime -> "screentime"
- BlockedSite -> "blockedsite"
- Timetable -> "timetable"
- Chat -> "chat"

Field names are snake_case in Python and camelCase in the stored documents
and JSON payloads (userId, totalTime, blockType, ...).
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

SiteCategory = Literal["Productivity", "Communication", "Entertainment", "Social Media", "News", "Shopping", "Other"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True)


# Core user and auth
class UserPreferences(CamelModel):
    goal: Optional[str] = None
    occupation: Optional[str] = None
    college: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    distracto_id: Optional[str] = Field(None, description="Unique social handle, distinct from email")


class User(CamelModel):
    email: EmailStr = Field(..., description="Email address, stored lowercased")
    password_hash: str = Field(..., description="Hashed password (bcrypt)")
    display_name: str = Field(..., min_length=1, max_length=80)
    photo_url: Optional[str] = Field(None, alias="photoURL")
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    following: List[ObjectId] = Field(default_factory=list)  # followers are derived from this
    is_bot: bool = False
    bot_type: Optional[Literal["assistant", "productivity", "meditation"]] = None
    last_active: Optional[datetime] = None
    is_online: bool = False

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


# Screen time
class AppUsage(CamelModel):
    name: Optional[str] = None
    url: Optional[str] = None
    minutes: float = 0
    category: Optional[SiteCategory] = None


class DeviceUsage(CamelModel):
    device_name: Optional[str] = None
    time_spent: float = 0
    apps: List[AppUsage] = Field(default_factory=list)


class ScreenTime(CamelModel):
    user_id: ObjectId
    date: datetime = Field(..., description="Midnight (UTC) of the tracked day")
    total_time: float = 0
    productive_time: float = 0
    unproductive_time: float = 0
    top_sites: List[AppUsage] = Field(default_factory=list)
    device_data: List[DeviceUsage] = Field(default_factory=list)
    extension_data: Optional[dict] = None


# Website blocking
class BlockedSite(CamelModel):
    user_id: ObjectId
    url: str = Field(..., min_length=1)
    is_active: bool = True
    block_type: Literal["always", "scheduled"] = "always"
    schedule_start: Optional[str] = Field(None, description="HH:MM, meaningful for scheduled blocks")
    schedule_end: Optional[str] = Field(None, description="HH:MM, meaningful for scheduled blocks")
    blocked_count: int = Field(0, ge=0)


# Timetables
class Task(CamelModel):
    time: Optional[str] = None
    description: Optional[str] = None
    completed: bool = False


class Timetable(CamelModel):
    user_id: ObjectId
    date: datetime
    title: Optional[str] = None
    prompt: Optional[str] = None
    tasks: List[Task] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    ai_model: str = "gemini-1.5-flash"


# Social
class ChatMessage(CamelModel):
    sender_id: ObjectId
    content: str
    timestamp: datetime
    is_read: bool = False


class Chat(CamelModel):
    participants: List[ObjectId] = Field(..., min_length=1)
    is_group_chat: bool = False
    group_name: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    last_message: Optional[ChatMessage] = None
    unread_count: Dict[str, int] = Field(default_factory=dict, description="Unread messages keyed by participant id")

"""
AI endpoints.

Generation is mediated by the server and currently templated: neither
endpoint calls a model provider, and no provider key ever reaches the client.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import Field

import settings
from auth import get_current_user
from schemas import CamelModel

router = APIRouter(prefix="/ai", tags=["ai"])

TEMPLATE_TASKS = [
    ("07:00 - 08:00", "Morning routine and breakfast"),
    ("08:00 - 10:00", "Deep work session - Priority tasks"),
    ("10:00 - 10:15", "Short break"),
    ("10:15 - 12:00", "Focused work on main project"),
    ("12:00 - 13:00", "Lunch break"),
    ("13:00 - 15:00", "Meetings and collaboration"),
    ("15:00 - 15:15", "Break and refresh"),
    ("15:15 - 17:00", "Administrative tasks and emails"),
    ("17:00 - 18:00", "Exercise and physical activity"),
    ("18:00 - 19:00", "Dinner"),
    ("19:00 - 21:00", "Personal time and relaxation"),
    ("21:00 - 22:00", "Plan for tomorrow and wind down"),
]

TEMPLATE_RECOMMENDATIONS = [
    "Schedule your most challenging tasks during your peak energy hours",
    "Take regular breaks to maintain focus and productivity",
    "Use the Pomodoro technique for deep work sessions",
    "Keep your workspace organized and distraction-free",
]


class ChatInput(CamelModel):
    message: str = Field(..., min_length=1)
    model: str = settings.DEFAULT_AI_MODEL


class TimetableInput(CamelModel):
    prompt: str = ""
    model: str = settings.DEFAULT_AI_MODEL


def long_date(moment: datetime) -> str:
    # e.g. "Monday, October 19, 2026"
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year}"


@router.post("/chat")
def ai_chat(payload: ChatInput, user=Depends(get_current_user)):
    response = (
        f'This is a mock AI response to: "{payload.message}". '
        f"In a production environment, this would integrate with {payload.model} API."
    )
    return {"response": response}


@router.post("/timetable")
def ai_timetable(payload: TimetableInput, user=Depends(get_current_user)):
    return {
        "date": long_date(datetime.now(timezone.utc)),
        "tasks": [{"time": t, "description": d} for t, d in TEMPLATE_TASKS],
        "recommendations": list(TEMPLATE_RECOMMENDATIONS),
    }

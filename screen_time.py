from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from auth import get_current_user
from database import create_document, db, day_start, get_documents, serialize, utcnow
from schemas import AppUsage, CamelModel, DeviceUsage, ScreenTime

router = APIRouter(prefix="/screen-time", tags=["screen-time"])


class ScreenTimeInput(CamelModel):
    total_time: Optional[float] = None
    productive_time: Optional[float] = None
    unproductive_time: Optional[float] = None
    top_sites: Optional[List[AppUsage]] = None
    device_data: Optional[List[DeviceUsage]] = None
    extension_data: Optional[dict] = None


def _parse_day(value: Optional[str]):
    try:
        return day_start(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date")


def _get_or_create(user_id, date) -> dict:
    doc = db["screentime"].find_one({"userId": user_id, "date": date})
    if doc:
        return doc
    try:
        create_document("screentime", ScreenTime(user_id=user_id, date=date))
    except DuplicateKeyError:
        # another request created the day's record first
        pass
    return db["screentime"].find_one({"userId": user_id, "date": date})


def _upsert(user_id, date, payload: ScreenTimeInput) -> dict:
    updates = payload.model_dump(by_alias=True, exclude_unset=True)
    defaults = ScreenTime(user_id=user_id, date=date).model_dump(by_alias=True, exclude_none=True)
    now = utcnow()
    updates["updatedAt"] = now
    on_insert = {k: v for k, v in defaults.items() if k not in updates and k not in ("userId", "date")}
    on_insert["createdAt"] = now
    return db["screentime"].find_one_and_update(
        {"userId": user_id, "date": date},
        {"$set": updates, "$setOnInsert": on_insert},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


# The weekly route is declared first so "weekly" is never read as a date
@router.get("/weekly/{start_date}")
def get_weekly(start_date: str, user=Depends(get_current_user)):
    start = _parse_day(start_date)
    end = start + timedelta(days=6)
    docs = get_documents(
        "screentime",
        {"userId": user["_id"], "date": {"$gte": start, "$lte": end}},
        sort=[("date", ASCENDING)],
    )
    return serialize(docs)


@router.get("")
def get_today(user=Depends(get_current_user)):
    return serialize(_get_or_create(user["_id"], _parse_day(None)))


@router.get("/{date}")
def get_for_date(date: str, user=Depends(get_current_user)):
    return serialize(_get_or_create(user["_id"], _parse_day(date)))


@router.put("")
def update_today(payload: ScreenTimeInput, user=Depends(get_current_user)):
    return serialize(_upsert(user["_id"], _parse_day(None), payload))


@router.put("/{date}")
def update_for_date(date: str, payload: ScreenTimeInput, user=Depends(get_current_user)):
    return serialize(_upsert(user["_id"], _parse_day(date), payload))

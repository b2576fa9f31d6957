from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING, ReturnDocument

import settings
from auth import get_current_user
from database import create_document, day_start, db, get_documents, naive_utc, serialize, to_object_id, utcnow
from schemas import CamelModel, Task, Timetable

router = APIRouter(prefix="/timetable", tags=["timetable"])


class TimetableInput(CamelModel):
    date: Optional[datetime] = None
    title: Optional[str] = None
    prompt: Optional[str] = None
    tasks: List[Task] = []
    recommendations: List[str] = []
    ai_model: str = settings.DEFAULT_AI_MODEL


class TimetableUpdate(CamelModel):
    date: Optional[datetime] = None
    title: Optional[str] = None
    prompt: Optional[str] = None
    tasks: Optional[List[Task]] = None
    recommendations: Optional[List[str]] = None
    ai_model: Optional[str] = None


def _owned(timetable_id: str, user: dict) -> dict:
    return {"_id": to_object_id(timetable_id), "userId": user["_id"]}


@router.get("")
def list_timetables(date: Optional[str] = None, limit: int = Query(10, ge=1, le=100), user=Depends(get_current_user)):
    q = {"userId": user["_id"]}
    if date:
        try:
            day = day_start(date)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date")
        q["date"] = {"$gte": day, "$lt": day + timedelta(days=1)}
    items = get_documents("timetable", q, limit=limit, sort=[("createdAt", DESCENDING), ("_id", DESCENDING)])
    return serialize(items)


@router.post("", status_code=201)
def create_timetable(payload: TimetableInput, user=Depends(get_current_user)):
    data = payload.model_dump()
    data["date"] = naive_utc(data["date"]) if data["date"] else utcnow()
    _id = create_document("timetable", Timetable(user_id=user["_id"], **data))
    return serialize(db["timetable"].find_one({"_id": to_object_id(_id)}))


@router.put("/{timetable_id}")
def update_timetable(timetable_id: str, payload: TimetableUpdate, user=Depends(get_current_user)):
    query = _owned(timetable_id, user)
    if query["_id"] is None:
        raise HTTPException(status_code=404, detail="Timetable not found")
    updates = payload.model_dump(by_alias=True, exclude_unset=True)
    if updates.get("date"):
        updates["date"] = naive_utc(updates["date"])
    updates["updatedAt"] = utcnow()
    timetable = db["timetable"].find_one_and_update(query, {"$set": updates}, return_document=ReturnDocument.AFTER)
    if not timetable:
        raise HTTPException(status_code=404, detail="Timetable not found")
    return serialize(timetable)


@router.delete("/{timetable_id}")
def delete_timetable(timetable_id: str, user=Depends(get_current_user)):
    query = _owned(timetable_id, user)
    if query["_id"] is None or not db["timetable"].find_one_and_delete(query):
        raise HTTPException(status_code=404, detail="Timetable not found")
    return {"message": "Timetable deleted successfully"}

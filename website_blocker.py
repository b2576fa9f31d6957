from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from pymongo import ReturnDocument

from auth import get_current_user
from database import create_document, db, get_documents, serialize, to_object_id, utcnow
from schemas import BlockedSite, CamelModel

router = APIRouter(prefix="/website-blocker", tags=["website-blocker"])


class BlockedSiteInput(CamelModel):
    url: str = Field(..., min_length=1)
    is_active: bool = True
    block_type: Literal["always", "scheduled"] = "always"
    schedule_start: Optional[str] = None
    schedule_end: Optional[str] = None


class BlockedSiteUpdate(CamelModel):
    url: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    block_type: Optional[Literal["always", "scheduled"]] = None
    schedule_start: Optional[str] = None
    schedule_end: Optional[str] = None
    blocked_count: Optional[int] = Field(None, ge=0)


def _owned(site_id: str, user: dict) -> dict:
    return {"_id": to_object_id(site_id), "userId": user["_id"]}


@router.get("")
def list_blocked_sites(user=Depends(get_current_user)):
    return serialize(get_documents("blockedsite", {"userId": user["_id"]}))


@router.post("", status_code=201)
def add_blocked_site(payload: BlockedSiteInput, user=Depends(get_current_user)):
    site = BlockedSite(user_id=user["_id"], **payload.model_dump())
    _id = create_document("blockedsite", site)
    return serialize(db["blockedsite"].find_one({"_id": to_object_id(_id)}))


@router.put("/{site_id}")
def update_blocked_site(site_id: str, payload: BlockedSiteUpdate, user=Depends(get_current_user)):
    query = _owned(site_id, user)
    if query["_id"] is None:
        raise HTTPException(status_code=404, detail="Blocked site not found")
    updates = payload.model_dump(by_alias=True, exclude_unset=True)
    updates["updatedAt"] = utcnow()
    site = db["blockedsite"].find_one_and_update(query, {"$set": updates}, return_document=ReturnDocument.AFTER)
    if not site:
        raise HTTPException(status_code=404, detail="Blocked site not found")
    return serialize(site)


@router.delete("/{site_id}")
def delete_blocked_site(site_id: str, user=Depends(get_current_user)):
    query = _owned(site_id, user)
    if query["_id"] is None or not db["blockedsite"].find_one_and_delete(query):
        raise HTTPException(status_code=404, detail="Blocked site not found")
    return {"message": "Blocked site deleted successfully"}

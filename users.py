import re
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from auth import get_current_user, public_user
from database import db, serialize, to_object_id, utcnow
from schemas import CamelModel

router = APIRouter(prefix="/users", tags=["users"])

CONTACT_FIELDS = {"displayName": 1, "email": 1, "photoURL": 1}
SEARCH_LIMIT = 20


class PreferencesInput(CamelModel):
    goal: Optional[str] = None
    occupation: Optional[str] = None
    college: Optional[str] = None
    interests: Optional[List[str]] = None
    distracto_id: Optional[str] = Field(None, min_length=3, max_length=40)


class ProfileInput(CamelModel):
    display_name: Optional[str] = Field(None, min_length=2, max_length=80)
    photo_url: Optional[str] = Field(None, alias="photoURL")
    preferences: Optional[PreferencesInput] = None


def contacts(ids: list, fields: dict = CONTACT_FIELDS) -> List[dict]:
    """Look up the public contact card of each id, keeping the given order."""
    if not ids:
        return []
    found = {doc["_id"]: doc for doc in db["user"].find({"_id": {"$in": ids}}, fields)}
    return [serialize(found[i]) for i in ids if i in found]


def follower_ids(user_id) -> list:
    # Followers are whoever lists this user in `following`
    return [doc["_id"] for doc in db["user"].find({"following": user_id}, {"_id": 1})]


def profile_view(user: dict) -> dict:
    doc = public_user(user)
    doc["followers"] = contacts(follower_ids(user["_id"]))
    doc["following"] = contacts(user.get("following", []))
    return doc


@router.get("/profile")
def get_profile(user=Depends(get_current_user)):
    return profile_view(user)


@router.put("/profile")
def update_profile(payload: ProfileInput, user=Depends(get_current_user)):
    updates = {}
    data = payload.model_dump(by_alias=True, exclude_unset=True)
    if "displayName" in data:
        name = (data["displayName"] or "").strip()
        if len(name) < 2:
            raise HTTPException(status_code=400, detail="Display name must be at least 2 characters")
        updates["displayName"] = name
    if "photoURL" in data:
        updates["photoURL"] = data["photoURL"]
    for key, value in (data.get("preferences") or {}).items():
        if key == "distractoId" and value is not None:
            value = value.strip()
            taken = db["user"].find_one({"preferences.distractoId": value, "_id": {"$ne": user["_id"]}}, {"_id": 1})
            if taken:
                raise HTTPException(status_code=400, detail="DistractoID is already taken")
        updates[f"preferences.{key}"] = value

    unset = {k: "" for k, v in updates.items() if v is None}
    updates = {k: v for k, v in updates.items() if v is not None}
    updates["updatedAt"] = utcnow()
    change = {"$set": updates}
    if unset:
        change["$unset"] = unset
    try:
        updated = db["user"].find_one_and_update({"_id": user["_id"]}, change, return_document=ReturnDocument.AFTER)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="DistractoID is already taken")
    return profile_view(updated)


@router.get("/search")
def search_users(q: Optional[str] = None, type: Literal["all", "distractoId"] = "all", user=Depends(get_current_user)):
    if not q or len(q.strip()) < 2:
        return []
    pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
    if type == "distractoId":
        query = {"preferences.distractoId": pattern}
    else:
        query = {"$or": [{"displayName": pattern}, {"preferences.distractoId": pattern}]}
    query["_id"] = {"$ne": user["_id"]}
    fields = dict(CONTACT_FIELDS, preferences=1)
    return serialize(list(db["user"].find(query, fields).limit(SEARCH_LIMIT)))


@router.post("/follow/{user_id}")
def follow_user(user_id: str, user=Depends(get_current_user)):
    target_id = to_object_id(user_id)
    if target_id == user["_id"]:
        raise HTTPException(status_code=400, detail="Cannot follow yourself")
    if target_id is None or not db["user"].find_one({"_id": target_id}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="User not found")
    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"following": target_id}})
    return {"message": "User followed successfully"}


@router.delete("/follow/{user_id}")
def unfollow_user(user_id: str, user=Depends(get_current_user)):
    target_id = to_object_id(user_id)
    if target_id is None:
        raise HTTPException(status_code=404, detail="User not found")
    db["user"].update_one({"_id": user["_id"]}, {"$pull": {"following": target_id}})
    return {"message": "User unfollowed successfully"}

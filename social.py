import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import Field
from pymongo import DESCENDING

from auth import get_current_user
from database import create_document, db, get_documents, serialize, to_object_id, utcnow
from realtime import hub
from schemas import CamelModel, Chat, ChatMessage
from users import CONTACT_FIELDS, contacts, follower_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/social", tags=["social"])

PROFILE_FIELDS = dict(CONTACT_FIELDS, preferences=1)


class ChatInput(CamelModel):
    participant_ids: List[str] = Field(default_factory=list)
    is_group_chat: bool = False
    group_name: Optional[str] = Field(None, max_length=80)


class MessageInput(CamelModel):
    content: str = Field(..., min_length=1, max_length=4000)


def chat_view(chat: dict) -> dict:
    doc = serialize(chat)
    doc["participants"] = contacts(chat.get("participants", []))
    return doc


def _participant_chat(chat_id: str, user: dict) -> dict:
    oid = to_object_id(chat_id)
    chat = db["chat"].find_one({"_id": oid, "participants": user["_id"]}) if oid else None
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.get("/chats")
def list_chats(user=Depends(get_current_user)):
    chats = get_documents("chat", {"participants": user["_id"]}, sort=[("updatedAt", DESCENDING), ("_id", DESCENDING)])
    return [chat_view(c) for c in chats]


@router.post("/chats", status_code=201)
def create_chat(payload: ChatInput, response: Response, user=Depends(get_current_user)):
    others = []
    for raw in payload.participant_ids:
        oid = to_object_id(raw)
        if oid is None:
            raise HTTPException(status_code=400, detail=f"Invalid participant id: {raw}")
        if oid != user["_id"] and oid not in others:
            others.append(oid)
    if not others:
        raise HTTPException(status_code=400, detail="At least one other participant is required")
    if db["user"].count_documents({"_id": {"$in": others}}) != len(others):
        raise HTTPException(status_code=404, detail="User not found")

    participants = [user["_id"]] + others
    if not payload.is_group_chat and len(others) == 1:
        existing = db["chat"].find_one({
            "participants": {"$all": participants, "$size": 2},
            "isGroupChat": False,
        })
        if existing:
            response.status_code = 200
            return chat_view(existing)

    chat = Chat(
        participants=participants,
        is_group_chat=payload.is_group_chat,
        group_name=payload.group_name if payload.is_group_chat else None,
        unread_count={str(p): 0 for p in participants},
    )
    _id = create_document("chat", chat)
    return chat_view(db["chat"].find_one({"_id": to_object_id(_id)}))


@router.get("/chats/{chat_id}")
def get_chat(chat_id: str, user=Depends(get_current_user)):
    return chat_view(_participant_chat(chat_id, user))


@router.post("/chats/{chat_id}/messages", status_code=201)
def send_message(chat_id: str, payload: MessageInput, user=Depends(get_current_user)):
    oid = to_object_id(chat_id)
    chat = db["chat"].find_one({"_id": oid}) if oid else None
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    if user["_id"] not in chat.get("participants", []):
        raise HTTPException(status_code=403, detail="Not authorized")

    message = ChatMessage(sender_id=user["_id"], content=payload.content, timestamp=utcnow())
    message_doc = message.model_dump(by_alias=True)
    recipients = [p for p in chat["participants"] if p != user["_id"]]
    change = {
        "$push": {"messages": message_doc},
        "$set": {"lastMessage": message_doc, "updatedAt": utcnow()},
    }
    if recipients:
        change["$inc"] = {f"unreadCount.{p}": 1 for p in recipients}
    db["chat"].update_one({"_id": oid}, change)

    event = {"chatId": chat_id, "message": serialize(message_doc), "senderName": user.get("displayName")}
    for participant in recipients:
        try:
            hub.emit(str(participant), "new-message", event)
        except Exception:
            # the message stays stored even if a push fails
            logger.exception("Failed to push message to %s", participant)
    return serialize(message_doc)


@router.post("/chats/{chat_id}/read")
def mark_read(chat_id: str, user=Depends(get_current_user)):
    chat = _participant_chat(chat_id, user)
    # one pipeline update: messages from others become read, own messages keep their flag
    read = {"$or": ["$$m.isRead", {"$ne": ["$$m.senderId", user["_id"]]}]}
    message = {"senderId": "$$m.senderId", "content": "$$m.content", "timestamp": "$$m.timestamp", "isRead": read}
    db["chat"].update_one({"_id": chat["_id"]}, [{"$set": {
        "messages": {"$map": {"input": "$messages", "as": "m", "in": message}},
        f"unreadCount.{user['_id']}": 0,
    }}])
    return {"message": "Chat marked as read"}


@router.get("/followers")
def get_followers(user=Depends(get_current_user)):
    return contacts(follower_ids(user["_id"]), PROFILE_FIELDS)


@router.get("/following")
def get_following(user=Depends(get_current_user)):
    return contacts(user.get("following", []), PROFILE_FIELDS)

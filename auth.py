import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException
from passlib.context import CryptContext
from pydantic import EmailStr, Field
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import settings
from database import create_document, db, serialize, to_object_id, utcnow
from schemas import CamelModel, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------- Auth Utilities ----------
class RegisterInput(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., min_length=2, max_length=80)


class LoginInput(CamelModel):
    email: EmailStr
    password: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(sub: str) -> str:
    payload = {
        "sub": sub,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRES_MIN),
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> Optional[str]:
    """Return the subject of a valid access token, or None."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload.get("sub")


def public_user(user: dict) -> dict:
    """JSON view of a user document. The password hash never leaves the server."""
    doc = {k: v for k, v in user.items() if k != "passwordHash"}
    return serialize(doc)


def find_user_by_token(token: str) -> Optional[dict]:
    user_id = to_object_id(decode_access_token(token))
    if user_id is None:
        return None
    return db["user"].find_one_and_update(
        {"_id": user_id},
        {"$set": {"lastActive": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    """
    Resolve the user behind an `Authorization: Bearer <token>` header.
    Missing, malformed, expired or orphaned tokens are all a 401.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Access token required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Invalid token")
    user = find_user_by_token(token.strip())
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


# ---------- Auth Routes ----------
@router.post("/register", status_code=201)
def register(payload: RegisterInput):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        display_name=payload.display_name.strip(),
        last_active=utcnow(),
    )
    try:
        user_id = create_document("user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")
    logger.info("Registered user %s", user_id)
    doc = db["user"].find_one({"_id": to_object_id(user_id)})
    return {"token": create_access_token(user_id), "user": public_user(doc)}


@router.post("/login")
def login(payload: LoginInput):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("passwordHash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"lastActive": utcnow(), "isOnline": True}})
    return {"token": create_access_token(str(user["_id"])), "user": public_user(user)}


@router.post("/logout")
def logout(user=Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"isOnline": False}})
    return {"message": "Logged out successfully"}


@router.get("/me")
def me(user=Depends(get_current_user)):
    return public_user(user)

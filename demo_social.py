"""
In-memory stand-ins for the friends, groups, chat and user-search backends.

Nothing here touches the network. With demo mode on, each call waits an
artificial delay and sent chat messages may get a canned reply; with demo mode
off, calls return immediately and nobody replies.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timedelta, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

import settings

logger = logging.getLogger(__name__)

CURRENT_USER = "currentUser"
REPLY_CHANCE = 0.7
REPLY_DELAY = 3.0

CANNED_REPLIES = [
    "Hey, how's your productivity going today?",
    "I just finished a deep work session. Feeling accomplished!",
    "Have you tried the new focus timer feature?",
    "My screen time is down 30% this week! The website blocker is really helping.",
    "Want to set up a productivity challenge?",
    "Just shared my productivity stats with you. Check it out!",
    "How's your schedule looking today?",
    "I'm having trouble staying focused. Any tips?",
    "The AI generated a great schedule for me today.",
    "Let's all try to reduce our distracting time this week!",
]


class Productivity(BaseModel):
    score: int = Field(..., ge=0, le=100)
    screen_time: int
    productive_time: int
    distracting_time: int


class Friend(BaseModel):
    id: str
    display_name: str
    email: str
    photo_url: Optional[str] = None
    status: Literal["online", "offline", "away"] = "offline"
    last_active: Optional[datetime] = None
    productivity: Optional[Productivity] = None


class RequestSender(BaseModel):
    id: str
    display_name: str
    email: str
    photo_url: Optional[str] = None


class FriendRequest(BaseModel):
    id: str
    sender: RequestSender
    to: str
    status: Literal["pending", "accepted", "declined"] = "pending"
    created_at: datetime


class FriendGroup(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_by: str
    members: List[Friend] = Field(default_factory=list)
    created_at: datetime


class ChatMessage(BaseModel):
    id: str
    sender_id: str
    sender_name: str
    content: str
    timestamp: datetime
    is_read: bool = False


class ChatThread(BaseModel):
    id: str
    participants: List[str]
    last_message: Optional[ChatMessage] = None
    unread_count: int = 0
    is_group_chat: bool = False
    group_name: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)


class UserPreferences(BaseModel):
    distracto_id: Optional[str] = None
    goal: Optional[str] = None
    occupation: Optional[str] = None
    college: Optional[str] = None
    interests: List[str] = Field(default_factory=list)


class DirectoryUser(BaseModel):
    id: str
    email: str
    display_name: str
    photo_url: Optional[str] = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)


def _directory() -> List[DirectoryUser]:
    rows = [
        ("user1", "john@example.com", "John Smith", 5, "johnsmith", "Reduce screen time", "Software Developer", "MIT",
         ["Technology", "Productivity", "Reading"]),
        ("user2", "lisa@example.com", "Lisa Johnson", 6, "lisaj", "Better focus", "UX Designer", "Stanford",
         ["Design", "Art", "Meditation"]),
        ("user3", "mike@example.com", "Mike Williams", 7, "mikew", "Work-life balance", "Project Manager", "Harvard",
         ["Time Management", "Leadership", "Health"]),
        ("user4", "sarah@example.com", "Sarah Chen", 8, "sarahc", "Reduce screen time", "Digital Marketer", "NYU",
         ["Digital Detox", "Marketing", "Psychology"]),
        ("user5", "david@example.com", "David Wilson", 9, "davidw", "Better focus", "Data Scientist", "UC Berkeley",
         ["AI", "Deep Work", "Statistics"]),
        ("user6", "piyush@example.com", "Piyush Sharma", 10, "piyushs", "Digital wellbeing", "Software Engineer",
         "IIT Delhi", ["Coding", "AI", "Productivity"]),
        ("user7", "patricia@example.com", "Patricia Lopez", 11, "patricial", "Focus improvement", "Content Creator",
         "UCLA", ["Writing", "Social Media", "Photography"]),
        ("user8", "priya@example.com", "Priya Patel", 12, "priyap", "Screen time management", "UI Designer", "RISD",
         ["Design", "Illustration", "UX Research"]),
    ]
    return [
        DirectoryUser(
            id=uid, email=email, display_name=name, photo_url=f"https://i.pravatar.cc/150?u={avatar}",
            preferences=UserPreferences(distracto_id=handle, goal=goal, occupation=job, college=college,
                                        interests=interests),
        )
        for uid, email, name, avatar, handle, goal, job, college, interests in rows
    ]


class DemoState:
    """The fixture data every demo service reads and mutates."""

    def __init__(self, now: Optional[datetime] = None):
        now = now or datetime.now(timezone.utc)
        self.friends = [
            Friend(id="friend1", display_name="Alex Johnson", email="alex@example.com",
                   photo_url="https://i.pravatar.cc/150?u=1", status="online", last_active=now,
                   productivity=Productivity(score=85, screen_time=320, productive_time=215, distracting_time=65)),
            Friend(id="friend2", display_name="Sam Taylor", email="sam@example.com",
                   photo_url="https://i.pravatar.cc/150?u=2", status="away", last_active=now - timedelta(minutes=30),
                   productivity=Productivity(score=72, screen_time=380, productive_time=185, distracting_time=120)),
            Friend(id="friend3", display_name="Jamie Lee", email="jamie@example.com",
                   photo_url="https://i.pravatar.cc/150?u=3", status="offline", last_active=now - timedelta(hours=2),
                   productivity=Productivity(score=63, screen_time=450, productive_time=210, distracting_time=170)),
        ]
        self.friend_requests = [
            FriendRequest(id="req1", to=CURRENT_USER, created_at=now - timedelta(days=1),
                          sender=RequestSender(id="user123", display_name="Chris Williams", email="chris@example.com",
                                               photo_url="https://i.pravatar.cc/150?u=4")),
        ]
        self.groups = [
            FriendGroup(id="group1", name="Study Group", description="For our study sessions and productivity tracking",
                        created_by=CURRENT_USER, members=[self.friends[0], self.friends[1]],
                        created_at=now - timedelta(days=7)),
        ]
        direct = [
            ChatMessage(id="msg1", sender_id=CURRENT_USER, sender_name="You", content="Hey, how's it going?",
                        timestamp=now - timedelta(hours=2), is_read=True),
            ChatMessage(id="msg2", sender_id="friend1", sender_name="Alex Johnson",
                        content="Good, been working on that project!", timestamp=now - timedelta(hours=1), is_read=True),
            ChatMessage(id="msg3", sender_id="friend1", sender_name="Alex Johnson",
                        content="How's your productivity today?", timestamp=now - timedelta(minutes=30)),
        ]
        group = [
            ChatMessage(id="gmsg1", sender_id=CURRENT_USER, sender_name="You",
                        content="Hey everyone, I created this group for us to track our productivity together!",
                        timestamp=now - timedelta(hours=5), is_read=True),
            ChatMessage(id="gmsg2", sender_id="friend2", sender_name="Sam Taylor",
                        content="Let's try to beat our productivity scores this week!",
                        timestamp=now - timedelta(hours=3), is_read=True),
        ]
        self.chats = [
            ChatThread(id="chat1", participants=[CURRENT_USER, "friend1"], messages=direct,
                       last_message=direct[-1], unread_count=1),
            ChatThread(id="chat2", participants=[CURRENT_USER, "friend2", "friend3"], messages=group,
                       last_message=group[-1], is_group_chat=True, group_name="Productivity Challenge"),
        ]
        self.directory = _directory()


def _new_id(prefix: str) -> str:
    return f"{prefix}{time.time_ns()}"


class DemoService:
    def __init__(self, state: DemoState, demo_mode: Optional[bool] = None, latency_scale: float = 1.0,
                 rng: Optional[random.Random] = None):
        self.state = state
        self.demo_mode = settings.DEMO_MODE if demo_mode is None else demo_mode
        self.latency_scale = latency_scale
        self.rng = rng or random.Random()

    async def _latency(self, ms: int) -> None:
        if self.demo_mode:
            await asyncio.sleep(ms / 1000 * self.latency_scale)


class FriendsService(DemoService):
    async def get_friends(self) -> List[Friend]:
        await self._latency(800)
        return list(self.state.friends)

    async def get_friend_requests(self) -> List[FriendRequest]:
        await self._latency(600)
        return list(self.state.friend_requests)

    async def send_friend_request(self, email: str) -> FriendRequest:
        await self._latency(1000)
        if "@" not in email:
            raise ValueError("Invalid email address")
        request = FriendRequest(
            id=_new_id("req"),
            sender=RequestSender(id=CURRENT_USER, display_name="Current User", email="current@example.com"),
            to=email,
            created_at=datetime.now(timezone.utc),
        )
        self.state.friend_requests.append(request)
        return request

    def _find_request(self, request_id: str) -> FriendRequest:
        for request in self.state.friend_requests:
            if request.id == request_id:
                return request
        raise LookupError("Friend request not found")

    async def accept_friend_request(self, request_id: str) -> Friend:
        await self._latency(1000)
        request = self._find_request(request_id)
        friend = Friend(
            id=request.sender.id,
            display_name=request.sender.display_name,
            email=request.sender.email,
            photo_url=request.sender.photo_url,
            last_active=datetime.now(timezone.utc),
            productivity=Productivity(
                score=self.rng.randint(60, 89),
                screen_time=self.rng.randint(300, 499),
                productive_time=self.rng.randint(150, 299),
                distracting_time=self.rng.randint(50, 149),
            ),
        )
        self.state.friends.append(friend)
        self.state.friend_requests.remove(request)
        return friend

    async def decline_friend_request(self, request_id: str) -> None:
        await self._latency(800)
        self.state.friend_requests.remove(self._find_request(request_id))

    async def remove_friend(self, friend_id: str) -> None:
        await self._latency(800)
        for friend in self.state.friends:
            if friend.id == friend_id:
                self.state.friends.remove(friend)
                return
        raise LookupError("Friend not found")

    async def share_productivity_data(self, target_id: str, data: dict) -> None:
        await self._latency(800)
        logger.info("Sharing productivity data with %s: %s", target_id, data)


class GroupsService(DemoService):
    async def get_friend_groups(self) -> List[FriendGroup]:
        await self._latency(800)
        return list(self.state.groups)

    async def create_friend_group(self, name: str, description: str, member_ids: List[str]) -> FriendGroup:
        await self._latency(1000)
        if not name:
            raise ValueError("Group name is required")
        group = FriendGroup(
            id=_new_id("group"),
            name=name,
            description=description,
            created_by=CURRENT_USER,
            members=[f for f in self.state.friends if f.id in member_ids],
            created_at=datetime.now(timezone.utc),
        )
        self.state.groups.append(group)
        return group

    async def share_group_productivity_data(self, group_id: str, data: dict) -> None:
        await self._latency(800)
        logger.info("Sharing productivity data with group %s: %s", group_id, data)


class ChatService(DemoService):
    def __init__(self, *args, reply_delay: float = REPLY_DELAY, **kwargs):
        super().__init__(*args, **kwargs)
        self.reply_delay = reply_delay
        self._pending = set()

    def _find(self, chat_id: str) -> ChatThread:
        for chat in self.state.chats:
            if chat.id == chat_id:
                return chat
        raise LookupError("Chat thread not found")

    async def get_chat_threads(self) -> List[ChatThread]:
        await self._latency(800)
        return list(self.state.chats)

    async def get_chat_thread(self, chat_id: str) -> ChatThread:
        await self._latency(600)
        return self._find(chat_id)

    async def send_message(self, chat_id: str, content: str) -> ChatMessage:
        await self._latency(800)
        chat = self._find(chat_id)
        message = ChatMessage(
            id=_new_id("msg"),
            sender_id=CURRENT_USER,
            sender_name="You",
            content=content,
            timestamp=datetime.now(timezone.utc),
            is_read=True,
        )
        chat.messages.append(message)
        chat.last_message = message
        if self.demo_mode:
            task = asyncio.get_running_loop().create_task(self._auto_reply(chat))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return message

    async def _auto_reply(self, chat: ChatThread) -> None:
        await asyncio.sleep(self.reply_delay * self.latency_scale)
        if self.rng.random() >= REPLY_CHANCE:
            return
        sender = next((p for p in chat.participants if p != CURRENT_USER), "friend1")
        if chat.is_group_chat:
            sender_name = "Group Member"
        else:
            sender_name = next((f.display_name for f in self.state.friends if f.id == sender), "Sam Taylor")
        reply = ChatMessage(
            id=_new_id("msg"),
            sender_id=sender,
            sender_name=sender_name,
            content=self.rng.choice(CANNED_REPLIES),
            timestamp=datetime.now(timezone.utc),
        )
        chat.messages.append(reply)
        chat.last_message = reply
        chat.unread_count += 1

    async def drain(self) -> None:
        """Wait for every scheduled auto-reply to land."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def create_chat_thread(self, participant_ids: List[str], is_group: bool = False,
                                 group_name: Optional[str] = None) -> ChatThread:
        await self._latency(1000)
        thread = ChatThread(
            id=_new_id("chat"),
            participants=[CURRENT_USER] + list(participant_ids),
            is_group_chat=is_group,
            group_name=group_name if is_group else None,
        )
        self.state.chats.insert(0, thread)
        return thread

    async def mark_as_read(self, chat_id: str) -> None:
        await self._latency(500)
        for chat in self.state.chats:
            if chat.id == chat_id:
                chat.unread_count = 0
                for message in chat.messages:
                    message.is_read = True


class UserSearchService(DemoService):
    async def search_by_distracto_id(self, query: str) -> List[DirectoryUser]:
        await self._latency(800)
        q = query.lower()
        return [u for u in self.state.directory if q in (u.preferences.distracto_id or "").lower()]

    async def auto_suggest_users(self, query: str) -> List[DirectoryUser]:
        await self._latency(300)
        if not query or not query.strip():
            return []
        q = query.lower()
        return [
            u for u in self.state.directory
            if u.display_name.lower().startswith(q) or (u.preferences.distracto_id or "").lower().startswith(q)
        ]

    async def search_by_preferences(self, goal: Optional[str] = None, occupation: Optional[str] = None,
                                    college: Optional[str] = None,
                                    interests: Optional[List[str]] = None) -> List[DirectoryUser]:
        await self._latency(1000)
        results = list(self.state.directory)
        for field, wanted in (("goal", goal), ("occupation", occupation), ("college", college)):
            if wanted:
                results = [u for u in results if (getattr(u.preferences, field) or "").lower() == wanted.lower()]
        if interests:
            results = [u for u in results if any(i in u.preferences.interests for i in interests)]
        return results

    async def get_recommended_users(self, user_id: str) -> List[DirectoryUser]:
        await self._latency(1200)
        return [u for u in self.state.directory if u.id != user_id]

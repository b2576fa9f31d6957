import asyncio
import random

import pytest

from demo_social import (
    CANNED_REPLIES,
    CURRENT_USER,
    ChatService,
    DemoState,
    FriendsService,
    GroupsService,
    UserSearchService,
)


class FixedRandom(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def state():
    return DemoState()


def test_fixture_data(state):
    assert [f.id for f in state.friends] == ["friend1", "friend2", "friend3"]
    assert state.friend_requests[0].sender.display_name == "Chris Williams"
    assert [c.id for c in state.chats] == ["chat1", "chat2"]
    assert len(state.directory) == 8


def test_accept_request_moves_sender_to_friends(state):
    friends = FriendsService(state, demo_mode=False)
    friend = run(friends.accept_friend_request("req1"))
    assert friend.id == "user123"
    assert 60 <= friend.productivity.score <= 89
    assert run(friends.get_friend_requests()) == []
    assert run(friends.get_friends())[-1].id == "user123"


def test_unknown_request_and_friend(state):
    friends = FriendsService(state, demo_mode=False)
    with pytest.raises(LookupError):
        run(friends.accept_friend_request("missing"))
    with pytest.raises(LookupError):
        run(friends.decline_friend_request("missing"))
    with pytest.raises(LookupError):
        run(friends.remove_friend("nobody"))


def test_send_and_decline_request(state):
    friends = FriendsService(state, demo_mode=False)
    request = run(friends.send_friend_request("new@example.com"))
    assert request.status == "pending"
    assert request.sender.id == CURRENT_USER
    run(friends.decline_friend_request(request.id))
    assert [r.id for r in state.friend_requests] == ["req1"]
    with pytest.raises(ValueError):
        run(friends.send_friend_request("not-an-email"))


def test_remove_friend(state):
    friends = FriendsService(state, demo_mode=False)
    run(friends.remove_friend("friend2"))
    assert [f.id for f in state.friends] == ["friend1", "friend3"]


def test_create_group_keeps_known_members(state):
    groups = GroupsService(state, demo_mode=False)
    group = run(groups.create_friend_group("Night owls", "Late focus", ["friend3", "stranger"]))
    assert [m.id for m in group.members] == ["friend3"]
    assert len(run(groups.get_friend_groups())) == 2
    with pytest.raises(ValueError):
        run(groups.create_friend_group("", "", []))


def test_no_reply_outside_demo_mode(state):
    chats = ChatService(state, demo_mode=False, reply_delay=0)

    async def scenario():
        await chats.send_message("chat1", "hello")
        await chats.drain()

    run(scenario())
    chat = state.chats[0]
    assert chat.last_message.content == "hello"
    assert chat.last_message.sender_id == CURRENT_USER
    assert chat.unread_count == 1


def test_auto_reply_in_demo_mode(state):
    chats = ChatService(state, demo_mode=True, latency_scale=0, reply_delay=0, rng=FixedRandom(0.1))

    async def scenario():
        await chats.send_message("chat1", "hello")
        await chats.drain()

    run(scenario())
    chat = state.chats[0]
    assert chat.messages[-2].content == "hello"
    reply = chat.last_message
    assert reply.sender_id == "friend1"
    assert reply.sender_name == "Alex Johnson"
    assert reply.content in CANNED_REPLIES
    assert chat.unread_count == 2


def test_group_reply_sender_name(state):
    chats = ChatService(state, demo_mode=True, latency_scale=0, reply_delay=0, rng=FixedRandom(0.1))

    async def scenario():
        await chats.send_message("chat2", "hi group")
        await chats.drain()

    run(scenario())
    assert state.chats[1].last_message.sender_name == "Group Member"


def test_reply_is_probabilistic(state):
    chats = ChatService(state, demo_mode=True, latency_scale=0, reply_delay=0, rng=FixedRandom(0.7))

    async def scenario():
        await chats.send_message("chat1", "anyone?")
        await chats.drain()

    run(scenario())
    assert state.chats[0].last_message.content == "anyone?"


def test_create_thread_and_mark_read(state):
    chats = ChatService(state, demo_mode=False)
    thread = run(chats.create_chat_thread(["friend3"]))
    assert run(chats.get_chat_threads())[0].id == thread.id
    assert thread.participants == [CURRENT_USER, "friend3"]

    run(chats.mark_as_read("chat1"))
    chat = run(chats.get_chat_thread("chat1"))
    assert chat.unread_count == 0
    assert all(m.is_read for m in chat.messages)
    with pytest.raises(LookupError):
        run(chats.get_chat_thread("nope"))


def test_search_directory(state):
    search = UserSearchService(state, demo_mode=False)
    assert [u.id for u in run(search.search_by_distracto_id("J"))] == ["user1", "user2"]
    assert [u.id for u in run(search.auto_suggest_users("li"))] == ["user2"]
    assert run(search.auto_suggest_users("   ")) == []
    matches = run(search.search_by_preferences(goal="better focus", interests=["AI"]))
    assert [u.id for u in matches] == ["user5"]
    assert len(run(search.get_recommended_users("user1"))) == 7

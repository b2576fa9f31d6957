from datetime import datetime, timezone


def _create(client, user, **fields):
    body = {
        "date": "2024-05-01T00:00:00",
        "title": "Study day",
        "tasks": [
            {"time": "08:00 - 10:00", "description": "Deep work"},
            {"time": "10:00 - 10:15", "description": "Break"},
        ],
        "recommendations": ["Take breaks"],
        **fields,
    }
    resp = client.post("/api/timetable", json=body, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create(client, alice):
    timetable = _create(client, alice)
    assert timetable["userId"] == alice["id"]
    assert timetable["aiModel"] == "gemini-1.5-flash"
    assert [t["completed"] for t in timetable["tasks"]] == [False, False]


def test_list_newest_first_with_limit(client, alice):
    for title in ("one", "two", "three"):
        _create(client, alice, title=title)
    resp = client.get("/api/timetable", params={"limit": 2}, headers=alice["headers"])
    assert [t["title"] for t in resp.json()] == ["three", "two"]


def test_list_filters_by_date(client, alice):
    _create(client, alice, title="may")
    _create(client, alice, title="june", date="2024-06-01T00:00:00")
    resp = client.get("/api/timetable", params={"date": "2024-06-01"}, headers=alice["headers"])
    assert [t["title"] for t in resp.json()] == ["june"]


def test_list_only_own(client, alice, bob):
    _create(client, alice)
    assert client.get("/api/timetable", headers=bob["headers"]).json() == []


def test_complete_a_task(client, alice):
    timetable = _create(client, alice)
    tasks = timetable["tasks"]
    tasks[0]["completed"] = True
    resp = client.put(f"/api/timetable/{timetable['_id']}", json={"tasks": tasks}, headers=alice["headers"])
    assert resp.status_code == 200
    assert [t["completed"] for t in resp.json()["tasks"]] == [True, False]
    assert resp.json()["title"] == "Study day"


def test_update_and_delete_are_owner_only(client, alice, bob):
    timetable = _create(client, alice)
    url = f"/api/timetable/{timetable['_id']}"
    assert client.put(url, json={"title": "mine"}, headers=bob["headers"]).status_code == 404
    assert client.delete(url, headers=bob["headers"]).status_code == 404
    resp = client.delete(url, headers=alice["headers"])
    assert resp.json() == {"message": "Timetable deleted successfully"}


def test_undated_timetable_is_listed_under_today(client, alice):
    resp = client.post("/api/timetable", json={"title": "today"}, headers=alice["headers"])
    assert resp.status_code == 201
    today = datetime.now(timezone.utc).date().isoformat()
    listed = client.get("/api/timetable", params={"date": today}, headers=alice["headers"]).json()
    assert [t["title"] for t in listed] == ["today"]


def test_date_filter_covers_the_whole_day(client, alice):
    _create(client, alice, title="evening", date="2024-06-01T21:30:00")
    _create(client, alice, title="next day", date="2024-06-02T00:00:00")
    listed = client.get("/api/timetable", params={"date": "2024-06-01"}, headers=alice["headers"]).json()
    assert [t["title"] for t in listed] == ["evening"]


def test_invalid_date_filter(client, alice):
    assert client.get("/api/timetable", params={"date": "someday"}, headers=alice["headers"]).status_code == 400

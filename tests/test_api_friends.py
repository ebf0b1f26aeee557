"""HTTP tests for the friends endpoints."""

from conftest import auth_headers

FRIENDS = "/api/v1/friends"


def _send(client, from_id, to_id):
    return client.post(f"{FRIENDS}/requests", json={"recipient_id": to_id}, headers=auth_headers(from_id))


def test_requires_token(client):
    assert client.get(f"{FRIENDS}/").status_code == 401
    assert client.get(f"{FRIENDS}/", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_send_request_then_duplicate(client):
    first = _send(client, "u1", "u2")
    again = _send(client, "u2", "u1")

    assert first.status_code == 201
    assert first.json()["outcome"] == "sent"
    assert first.json()["message"] == "Friend request sent!"
    assert again.status_code == 200
    assert again.json()["outcome"] == "already_pending"


def test_send_request_errors(client):
    to_self = _send(client, "u1", "u1")
    unknown = _send(client, "u1", "nobody")

    assert to_self.status_code == 400
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "Target user not found."


def test_pending_lists(client):
    friendship_id = _send(client, "u1", "u2").json()["friendship"]["id"]

    incoming = client.get(f"{FRIENDS}/requests", headers=auth_headers("u2")).json()
    outgoing = client.get(f"{FRIENDS}/requests", params={"direction": "outgoing"}, headers=auth_headers("u1")).json()

    assert [r["friendship_id"] for r in incoming] == [friendship_id]
    assert incoming[0]["counterpart"]["username"] == "alice"
    assert [r["friendship_id"] for r in outgoing] == [friendship_id]


def test_accept_flow(client):
    friendship_id = _send(client, "u1", "u2").json()["friendship"]["id"]

    by_requester = client.post(f"{FRIENDS}/requests/{friendship_id}/accept", headers=auth_headers("u1"))
    accepted = client.post(f"{FRIENDS}/requests/{friendship_id}/accept", headers=auth_headers("u2"))
    declined_late = client.post(f"{FRIENDS}/requests/{friendship_id}/decline", headers=auth_headers("u2"))

    assert by_requester.status_code == 403
    assert by_requester.json()["detail"] == "No longer your request to answer."
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert declined_late.status_code == 409
    assert declined_late.json()["detail"] == "This request was already answered."

    u1_friends = client.get(f"{FRIENDS}/", headers=auth_headers("u1")).json()
    u2_friends = client.get(f"{FRIENDS}/", headers=auth_headers("u2")).json()
    assert [f["profile"]["id"] for f in u1_friends] == ["u2"]
    assert [f["profile"]["id"] for f in u2_friends] == ["u1"]


def test_answer_unknown_request(client):
    response = client.post(f"{FRIENDS}/requests/missing/accept", headers=auth_headers("u2"))

    assert response.status_code == 404


def test_friends_sorted_by_name(client):
    for other in ("u3", "u2", "u4"):
        friendship_id = _send(client, "u1", other).json()["friendship"]["id"]
        client.post(f"{FRIENDS}/requests/{friendship_id}/accept", headers=auth_headers(other))

    friends = client.get(f"{FRIENDS}/", headers=auth_headers("u1")).json()

    assert [f["profile"]["display_name"] for f in friends] == ["Alicia", "Bob", "Carol"]


def test_remove_friend(client):
    friendship_id = _send(client, "u1", "u2").json()["friendship"]["id"]
    client.post(f"{FRIENDS}/requests/{friendship_id}/accept", headers=auth_headers("u2"))

    outsider = client.delete(f"{FRIENDS}/{friendship_id}", headers=auth_headers("u3"))
    removed = client.delete(f"{FRIENDS}/{friendship_id}", headers=auth_headers("u1"))

    assert outsider.status_code == 403
    assert removed.status_code == 204
    assert client.get(f"{FRIENDS}/", headers=auth_headers("u2")).json() == []


def test_search_excludes_self_and_friends(client):
    friendship_id = _send(client, "u1", "u4").json()["friendship"]["id"]

    before = client.get(f"{FRIENDS}/search", params={"q": "ali"}, headers=auth_headers("u1")).json()
    client.post(f"{FRIENDS}/requests/{friendship_id}/accept", headers=auth_headers("u4"))
    after = client.get(f"{FRIENDS}/search", params={"q": "ali"}, headers=auth_headers("u1")).json()
    blank = client.get(f"{FRIENDS}/search", params={"q": ""}, headers=auth_headers("u1")).json()

    assert [p["id"] for p in before] == ["u4"]
    assert after == []
    assert blank == []

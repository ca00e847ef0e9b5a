# mypy: ignore-errors
# tests/v1/test_notes.py
"""Tests for note endpoints."""

from __future__ import annotations

import base64

from fastapi import status

from litenotes.models import Note
from litenotes.schemas.note import DECRYPTION_FAILED_SENTINEL


def _create(client, headers, title="Groceries", content="eggs, milk"):
    response = client.post("/api/v1/notes/", json={"title": title, "content": content}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def test_create_note_echoes_plaintext(client, auth_headers, db_session) -> None:
    data = _create(client, auth_headers)

    assert data["title"] == "Groceries"
    assert data["content"] == "eggs, milk"
    assert data["created_at"] and data["updated_at"]
    stored = db_session.get(Note, data["id"])
    assert stored.content != "eggs, milk"


def test_list_and_get_notes(client, auth_headers) -> None:
    first = _create(client, auth_headers, "first", "one")
    second = _create(client, auth_headers, "second", "two")

    listing = client.get("/api/v1/notes/", headers=auth_headers)
    assert listing.status_code == status.HTTP_200_OK
    assert [note["id"] for note in listing.json()] == [second["id"], first["id"]]

    single = client.get(f"/api/v1/notes/{first['id']}", headers=auth_headers)
    assert single.status_code == status.HTTP_200_OK
    assert single.json()["content"] == "one"


def test_update_note(client, auth_headers) -> None:
    note = _create(client, auth_headers)

    response = client.put(
        f"/api/v1/notes/{note['id']}",
        json={"title": "Groceries", "content": "eggs, milk, bread"},
        headers=auth_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["message"] == "Note updated"
    fetched = client.get(f"/api/v1/notes/{note['id']}", headers=auth_headers).json()
    assert fetched["content"] == "eggs, milk, bread"


def test_delete_note(client, auth_headers) -> None:
    note = _create(client, auth_headers)

    response = client.delete(f"/api/v1/notes/{note['id']}", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK

    missing = client.get(f"/api/v1/notes/{note['id']}", headers=auth_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_notes_require_authentication(client) -> None:
    assert client.get("/api/v1/notes/").status_code == status.HTTP_401_UNAUTHORIZED
    assert client.post("/api/v1/notes/", json={"title": "x"}).status_code == status.HTTP_401_UNAUTHORIZED


def test_missing_key_asks_for_reauthentication(client, auth_headers, key_cache) -> None:
    """A valid token without a cached key yields a distinct 401."""
    key_cache.clear()

    response = client.get("/api/v1/notes/", headers=auth_headers)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "reauthenticate"


def test_other_users_notes_are_not_found(client, auth_headers, other_user) -> None:
    note = _create(client, auth_headers)
    login = client.post("/api/v1/auth/login", json={"username": "bob", "password": "hunter2hunter2"})
    bob_headers = {"Authorization": f"Bearer {login.json()['token']}"}

    assert client.get("/api/v1/notes/", headers=bob_headers).json() == []
    for method in ("get", "delete"):
        response = getattr(client, method)(f"/api/v1/notes/{note['id']}", headers=bob_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND
    response = client.put(f"/api/v1/notes/{note['id']}", json={"title": "x"}, headers=bob_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_corrupted_note_shows_sentinel(client, auth_headers, db_session) -> None:
    note = _create(client, auth_headers, "readable", "will break")
    stored = db_session.get(Note, note["id"])
    raw = bytearray(base64.b64decode(stored.content))
    raw[-1] ^= 0x01
    stored.content = base64.b64encode(bytes(raw)).decode("ascii")
    db_session.commit()

    listing = client.get("/api/v1/notes/", headers=auth_headers)

    assert listing.status_code == status.HTTP_200_OK
    [entry] = listing.json()
    assert entry["title"] == "readable"
    assert entry["content"] == DECRYPTION_FAILED_SENTINEL


def test_long_title_accepted(client, auth_headers) -> None:
    note = _create(client, auth_headers, title="t" * 5000, content="body")
    assert note["title"] == "t" * 5000


def test_oversized_content_rejected(client, auth_headers) -> None:
    response = client.post(
        "/api/v1/notes/", json={"title": "x", "content": "x" * 1_000_001}, headers=auth_headers
    )
    assert response.status_code == 422

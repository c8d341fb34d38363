"""Tests for the public card page data and its guestbook."""

from __future__ import annotations

import pytest

from guestbook_store import GuestbookStoreDB, GuestbookValidationError


class TestGuestbookStore:
    def test_add_hashes_password(self, db):
        entry = GuestbookStoreDB("sample").add("Sam", "1234", "Lovely card!")
        stored = db.execute("SELECT password FROM guestbooks WHERE id = ?", (entry.id,)).fetchone()
        assert stored["password"] != "1234"
        assert entry.to_dict()["content"] == "Lovely card!"
        assert "password" not in entry.to_dict()

    @pytest.mark.parametrize("name,password,content", [
        ("", "1234", "hi"),
        ("Sam", "", "hi"),
        ("Sam", "1234", "   "),
        ("A very long name", "1234", "hi"),
        ("Sam", "12345", "hi"),
        ("Sam", "1234", "x" * 501),
    ])
    def test_validation(self, db, name, password, content):
        with pytest.raises(GuestbookValidationError):
            GuestbookStoreDB("sample").add(name, password, content)

    def test_entries_newest_first(self, db):
        book = GuestbookStoreDB("sample")
        book.add("First", "1111", "one")
        book.add("Second", "2222", "two")
        assert [e.name for e in book.entries()] == ["Second", "First"]
        assert book.count() == 2
        assert GuestbookStoreDB("plain").count() == 0

    def test_delete_needs_matching_password(self, db):
        book = GuestbookStoreDB("sample")
        entry = book.add("Sam", "1234", "hi")
        assert book.delete(entry.id, "9999") is False
        assert book.delete(entry.id, "1234") is True
        assert book.delete(entry.id, "1234") is None

    def test_delete_scoped_to_card(self, db):
        entry = GuestbookStoreDB("sample").add("Sam", "1234", "hi")
        assert GuestbookStoreDB("plain").delete(entry.id, "1234") is None


class TestPublicCardAPI:
    def test_card(self, client):
        resp = client.get("/api/cards/sample")
        assert resp.status_code == 200
        card = resp.get_json()["card"]
        assert card["name"] == "Jane Doe"
        assert "credits" not in card
        assert "owner_email" not in card
        assert card["sections"][0]["id"] == "profile"
        assert card["guestbook_count"] == 0

    def test_unknown_card(self, client):
        assert client.get("/api/cards/nobody").status_code == 404


class TestGuestbookAPI:
    def test_post_list_delete(self, client):
        resp = client.post("/api/cards/sample/guestbook", json={"name": "Sam", "password": "1234", "content": "Hi!"})
        assert resp.status_code == 201
        entry_id = resp.get_json()["entry"]["id"]

        entries = client.get("/api/cards/sample/guestbook").get_json()["entries"]
        assert [e["id"] for e in entries] == [entry_id]

        resp = client.delete(f"/api/cards/sample/guestbook/{entry_id}", json={"password": "0000"})
        assert resp.status_code == 403
        resp = client.delete(f"/api/cards/sample/guestbook/{entry_id}", json={"password": "1234"})
        assert resp.status_code == 200
        assert client.get("/api/cards/sample/guestbook").get_json()["entries"] == []

    def test_numeric_password_accepted(self, client):
        resp = client.post("/api/cards/sample/guestbook", json={"name": "Sam", "password": 1234, "content": "Hi"})
        assert resp.status_code == 201

    def test_invalid_entry(self, client):
        resp = client.post("/api/cards/sample/guestbook", json={"name": "Sam", "password": "12", "content": "Hi"})
        assert resp.status_code == 400

    def test_unknown_card(self, client):
        resp = client.post("/api/cards/nobody/guestbook", json={"name": "Sam", "password": "1234", "content": "Hi"})
        assert resp.status_code == 404

    def test_delete_missing(self, client):
        assert client.delete("/api/cards/sample/guestbook/999", json={"password": "1234"}).status_code == 404

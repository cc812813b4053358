"""
Think Nest Backend — Notes API Tests
=====================================

What:  /api/notes through the app against in-memory SQLite.
How:   Each test signs up a fresh user (auth_headers) in its own database.

What we test:
    ✅ CRUD with camelCase payloads and the response envelope
    ✅ Search (with LIKE wildcards taken literally), tag, pin and archive filters
    ✅ Sorting, pagination block and X-Total-Count
    ✅ Stats and top tags
    ✅ Other users' notes and malformed ids are 404
"""

import uuid

import pytest

from conftest import bearer, signup_user


async def create(client, headers, title="Note", content="Body", **extra):
    response = await client.post(
        "/api/notes", json={"title": title, "content": content, **extra}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["note"]


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_note(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/notes",
            json={
                "title": "  Standup  ",
                "content": "Talk about the release",
                "tags": ["Work", "work", "Meetings"],
                "isPinned": True,
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Note created successfully"
        note = body["data"]["note"]
        assert note["title"] == "Standup"
        assert note["tags"] == ["work", "meetings"]
        assert note["isPinned"] is True
        assert note["isArchived"] is False
        assert note["color"] == "#ffffff"
        assert note["createdAt"] and note["updatedAt"]

    @pytest.mark.asyncio
    async def test_create_requires_title_and_content(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/notes", json={"title": "Only a title"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Title and content are required"

    @pytest.mark.asyncio
    async def test_create_rejects_bad_color(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/notes",
            json={"title": "T", "content": "C", "color": "blue"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_get_note(self, api_client, auth_headers):
        note = await create(api_client, auth_headers, tags=["a"])
        response = await api_client.get(f"/api/notes/{note['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["note"] == note
        assert response.headers["cache-control"] == "private, no-store"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("note_id", ["not-a-uuid", str(uuid.uuid4())])
    async def test_unknown_or_malformed_id(self, api_client, auth_headers, note_id):
        response = await api_client.get(f"/api/notes/{note_id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Note not found"

    @pytest.mark.asyncio
    async def test_requires_auth(self, api_client):
        response = await api_client.get("/api/notes")
        assert response.status_code == 401


class TestOwnership:
    @pytest.mark.asyncio
    async def test_other_users_note_is_invisible(self, api_client):
        alice = bearer(await signup_user(api_client, email="alice@example.com"))
        bob = bearer(await signup_user(api_client, email="bob@example.com"))
        note = await create(api_client, alice, title="Private")

        for method, suffix in [("GET", ""), ("PUT", ""), ("DELETE", ""), ("PATCH", "/pin")]:
            response = await api_client.request(
                method, f"/api/notes/{note['id']}{suffix}", json={"title": "x"}, headers=bob
            )
            assert response.status_code == 404, method

        listing = await api_client.get("/api/notes", headers=bob)
        assert listing.json()["data"]["notes"] == []

        still_there = await api_client.get(f"/api/notes/{note['id']}", headers=alice)
        assert still_there.json()["data"]["note"]["title"] == "Private"


class TestUpdateAndToggle:
    @pytest.mark.asyncio
    async def test_partial_update(self, api_client, auth_headers):
        note = await create(api_client, auth_headers, title="Draft", tags=["x"], color="#123456")

        response = await api_client.put(
            f"/api/notes/{note['id']}",
            json={"content": "Final text", "tags": ["Done"]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Note updated successfully"
        updated = response.json()["data"]["note"]
        assert updated["title"] == "Draft"
        assert updated["content"] == "Final text"
        assert updated["tags"] == ["done"]
        assert updated["color"] == "#123456"
        assert updated["updatedAt"] >= note["updatedAt"]

    @pytest.mark.asyncio
    async def test_update_rejects_empty_title(self, api_client, auth_headers):
        note = await create(api_client, auth_headers)
        response = await api_client.put(
            f"/api/notes/{note['id']}", json={"title": ""}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Title and content cannot be empty"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"title": ""}, {"color": "red"}, {"title": "t" * 201}])
    async def test_unknown_id_is_404_even_with_invalid_body(self, api_client, auth_headers, body):
        for note_id in ["not-a-uuid", str(uuid.uuid4())]:
            response = await api_client.put(
                f"/api/notes/{note_id}", json=body, headers=auth_headers
            )
            assert response.status_code == 404, note_id
            assert response.json()["message"] == "Note not found"

    @pytest.mark.asyncio
    async def test_other_users_note_is_404_even_with_invalid_body(self, api_client):
        alice = bearer(await signup_user(api_client, email="alice@example.com"))
        bob = bearer(await signup_user(api_client, email="bob@example.com"))
        note = await create(api_client, alice)

        response = await api_client.put(
            f"/api/notes/{note['id']}", json={"title": ""}, headers=bob
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_toggle_pin_and_archive_messages(self, api_client, auth_headers):
        note = await create(api_client, auth_headers)
        url = f"/api/notes/{note['id']}"

        pinned = await api_client.patch(f"{url}/pin", headers=auth_headers)
        assert pinned.json()["message"] == "Note pinned successfully"
        assert pinned.json()["data"]["note"]["isPinned"] is True

        unpinned = await api_client.patch(f"{url}/pin", headers=auth_headers)
        assert unpinned.json()["message"] == "Note unpinned successfully"

        archived = await api_client.patch(f"{url}/archive", headers=auth_headers)
        assert archived.json()["message"] == "Note archived successfully"

        unarchived = await api_client.patch(f"{url}/archive", headers=auth_headers)
        assert unarchived.json()["message"] == "Note unarchived successfully"
        assert unarchived.json()["data"]["note"]["isArchived"] is False


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_note(self, api_client, auth_headers):
        note = await create(api_client, auth_headers)
        response = await api_client.delete(f"/api/notes/{note['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Note deleted successfully"
        again = await api_client.delete(f"/api/notes/{note['id']}", headers=auth_headers)
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_bulk_delete_only_own_notes(self, api_client):
        alice = bearer(await signup_user(api_client, email="alice@example.com"))
        bob = bearer(await signup_user(api_client, email="bob@example.com"))
        mine = [await create(api_client, alice, title=f"n{i}") for i in range(3)]
        theirs = await create(api_client, bob)

        response = await api_client.request(
            "DELETE",
            "/api/notes",
            json={"noteIds": [mine[0]["id"], mine[1]["id"], theirs["id"], "garbage"]},
            headers=alice,
        )

        assert response.status_code == 200
        assert response.json()["message"] == "2 note(s) deleted successfully"
        assert response.json()["data"]["deletedCount"] == 2

        remaining = await api_client.get("/api/notes", headers=alice)
        assert [n["id"] for n in remaining.json()["data"]["notes"]] == [mine[2]["id"]]
        assert (await api_client.get(f"/api/notes/{theirs['id']}", headers=bob)).status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, {}, {"noteIds": []}, {"noteIds": "abc"}])
    async def test_bulk_delete_requires_list(self, api_client, auth_headers, payload):
        response = await api_client.request(
            "DELETE", "/api/notes", json=payload, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide an array of note IDs"


class TestListing:
    @pytest.mark.asyncio
    async def test_archived_hidden_by_default(self, api_client, auth_headers):
        await create(api_client, auth_headers, title="Visible")
        hidden = await create(api_client, auth_headers, title="Old")
        await api_client.patch(f"/api/notes/{hidden['id']}/archive", headers=auth_headers)

        default = await api_client.get("/api/notes", headers=auth_headers)
        assert [n["title"] for n in default.json()["data"]["notes"]] == ["Visible"]

        archived = await api_client.get("/api/notes?isArchived=true", headers=auth_headers)
        assert [n["title"] for n in archived.json()["data"]["notes"]] == ["Old"]

    @pytest.mark.asyncio
    async def test_search_title_and_content_case_insensitive(self, api_client, auth_headers):
        await create(api_client, auth_headers, title="Meeting notes", content="agenda")
        await create(api_client, auth_headers, title="Shopping", content="Buy MEETING snacks")
        await create(api_client, auth_headers, title="Other", content="nothing")

        response = await api_client.get(
            "/api/notes", params={"search": "meeting", "sortBy": "title", "sortOrder": "asc"},
            headers=auth_headers,
        )
        assert [n["title"] for n in response.json()["data"]["notes"]] == [
            "Meeting notes",
            "Shopping",
        ]

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, api_client, auth_headers):
        await create(api_client, auth_headers, title="50% off", content="sale")
        await create(api_client, auth_headers, title="500 items", content="stock")

        response = await api_client.get(
            "/api/notes", params={"search": "50%"}, headers=auth_headers
        )
        assert [n["title"] for n in response.json()["data"]["notes"]] == ["50% off"]

    @pytest.mark.asyncio
    async def test_tag_and_pin_filters(self, api_client, auth_headers):
        await create(api_client, auth_headers, title="A", tags=["work"], isPinned=True)
        await create(api_client, auth_headers, title="B", tags=["home"])
        await create(api_client, auth_headers, title="C", tags=["urgent", "work"])

        by_tag = await api_client.get(
            "/api/notes",
            params={"tags": "Work,urgent", "sortBy": "title", "sortOrder": "asc"},
            headers=auth_headers,
        )
        assert [n["title"] for n in by_tag.json()["data"]["notes"]] == ["A", "C"]

        pinned = await api_client.get("/api/notes?isPinned=true", headers=auth_headers)
        assert [n["title"] for n in pinned.json()["data"]["notes"]] == ["A"]

    @pytest.mark.asyncio
    async def test_sorting(self, api_client, auth_headers):
        for title in ["banana", "apple", "cherry"]:
            await create(api_client, auth_headers, title=title)

        asc = await api_client.get(
            "/api/notes?sortBy=title&sortOrder=asc", headers=auth_headers
        )
        desc = await api_client.get(
            "/api/notes?sortBy=title&sortOrder=desc", headers=auth_headers
        )
        assert [n["title"] for n in asc.json()["data"]["notes"]] == ["apple", "banana", "cherry"]
        assert [n["title"] for n in desc.json()["data"]["notes"]] == ["cherry", "banana", "apple"]

    @pytest.mark.asyncio
    async def test_pagination(self, api_client, auth_headers):
        for i in range(5):
            await create(api_client, auth_headers, title=f"note-{i}")

        response = await api_client.get(
            "/api/notes?page=3&limit=2&sortBy=title&sortOrder=asc", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.headers["x-total-count"] == "5"
        data = response.json()["data"]
        assert [n["title"] for n in data["notes"]] == ["note-4"]
        assert data["pagination"] == {
            "currentPage": 3,
            "totalPages": 3,
            "totalNotes": 5,
            "hasMore": False,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["limit=101", "limit=0", "page=0"])
    async def test_paging_bounds(self, api_client, auth_headers, query):
        response = await api_client.get(f"/api/notes?{query}", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request data"


class TestStats:
    @pytest.mark.asyncio
    async def test_empty_stats(self, api_client, auth_headers):
        response = await api_client.get("/api/notes/stats", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {
            "stats": {"total": 0, "pinned": 0, "archived": 0, "active": 0},
            "topTags": [],
        }

    @pytest.mark.asyncio
    async def test_counters_and_top_tags(self, api_client, auth_headers):
        await create(api_client, auth_headers, tags=["work", "urgent"], isPinned=True)
        await create(api_client, auth_headers, tags=["work", "home"])
        archived = await create(api_client, auth_headers, tags=["work"])
        await api_client.patch(f"/api/notes/{archived['id']}/archive", headers=auth_headers)

        response = await api_client.get("/api/notes/stats", headers=auth_headers)
        data = response.json()["data"]

        assert response.json()["message"] == "Statistics retrieved successfully"
        assert data["stats"] == {"total": 3, "pinned": 1, "archived": 1, "active": 2}
        assert data["topTags"] == [
            {"tag": "work", "count": 3},
            {"tag": "home", "count": 1},
            {"tag": "urgent", "count": 1},
        ]

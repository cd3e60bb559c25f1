"""End-to-end tests through the HTTP API (dev auth, SQLite, local storage)."""

import json
from datetime import datetime

import httpx
import pytest

from gratitude.core.auth import AuthenticatedUser
from gratitude.core.config import get_settings
from gratitude.core.dependencies import get_db, get_now, get_storage_dep, get_user
from gratitude.core.storage import LocalStorage
from gratitude.factory import create_app
from gratitude.services import llm, speech

MORNING_BEFORE_CHRISTMAS = datetime(2026, 12, 20, 9, 0)


@pytest.fixture
def app(session_factory, tmp_path):
    app = create_app()

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_now] = lambda: MORNING_BEFORE_CHRISTMAS
    app.dependency_overrides[get_storage_dep] = lambda: LocalStorage(str(tmp_path / "files"))
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _setenv(monkeypatch, name: str, value: str) -> None:
    """Settings are cached when the app is built; rebuild them with the new value."""
    monkeypatch.setenv(name, value)
    get_settings.cache_clear()


def _mock_llm_reply(reply_for) -> None:
    """Answer every chat completion with reply_for(prompt)."""

    def handler(request: httpx.Request) -> httpx.Response:
        prompt = json.loads(request.content)["messages"][-1]["content"]
        content = json.dumps(reply_for(prompt))
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    llm.set_client(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def _create_memory(client, text="Thank you so much for the support", **form) -> dict:
    resp = await client.post("/v1/memories", data={"text": text, "sender_name": "Grandma", **form})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestPublic:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok", "service": "gratitude-garden"}

    async def test_auth_config_dev_mode(self, client):
        resp = await client.get("/auth/config")
        assert resp.json()["auth_enabled"] is False


class TestDaily:
    async def test_empty_garden(self, client):
        resp = await client.get("/v1/daily")
        body = resp.json()

        assert resp.status_code == 200
        assert body["entry"] is None
        assert body["date"] == "2026-12-20"
        assert body["season"] == "winter"
        assert body["greeting"].startswith("Good morning")
        assert body["formatted_date"] == "Sunday, December 20, 2026"

    async def test_same_entry_all_day(self, client, monkeypatch):
        _setenv(monkeypatch, "GEMINI_API_KEY", "test-key")

        def reply_for(prompt: str) -> list[dict]:
            story = (
                "A scarf arrived wrapped for Christmas morning."
                if "Christmas" in prompt else "A card arrived on an ordinary day."
            )
            return [{
                "entry_id": "GRAT-001",
                "core_theme": "Thoughtful Gifts",
                "summary_story": story,
                "specific_details": ["Hand-wrapped"],
                "reflection_prompt": "Which gift made you feel seen?",
                "tags": ["Gifts"],
            }]

        _mock_llm_reply(reply_for)
        await _create_memory(client, "Merry Christmas! Thank you for the lovely scarf.", occasion="Christmas")
        await _create_memory(client, "Happy birthday, dear friend", sender_name="Aunt May")

        first = (await client.get("/v1/daily")).json()
        second = (await client.get("/v1/daily")).json()

        assert first["entry"]["id"] == second["entry"]["id"]
        assert first["surfacing_reason"] == "holiday:Christmas"
        assert first["surfacing_text"] == "Surfaced for Christmas"
        assert first["sender_name"] == "Grandma"
        assert first["viewed"] is True

    async def test_peek_without_marking_viewed(self, client):
        await _create_memory(client)
        body = (await client.get("/v1/daily", params={"mark_viewed": "false"})).json()
        assert body["viewed"] is False

        resp = await client.post("/v1/daily/viewed")
        assert resp.json() == {"date": "2026-12-20", "viewed": True}

    async def test_viewed_before_anything_surfaced(self, client):
        assert (await client.post("/v1/daily/viewed")).status_code == 404


class TestMemories:
    async def test_typed_text_uses_fallback_entry(self, client):
        memory = await _create_memory(client)

        assert memory["is_processed"] is True
        assert memory["source_type"] == "note"
        assert len(memory["entries"]) == 1
        entry = memory["entries"][0]
        assert entry["core_theme"] == "Support & Kindness"
        assert "Thankfulness" in entry["tags"]

    async def test_text_file_upload(self, client):
        resp = await client.post(
            "/v1/memories",
            files={"file": ("letter.txt", b"Dear Sam, thank you for helping me move.", "text/plain")},
            data={"sender_name": "Aunt May"},
        )
        memory = resp.json()

        assert resp.status_code == 200, resp.text
        assert memory["extracted_text"].startswith("Dear Sam")
        assert memory["source_type"] == "letter"
        assert memory["original_image_url"].startswith("/v1/files/")

        original = await client.get(memory["original_image_url"])
        assert original.status_code == 200
        assert original.content == b"Dear Sam, thank you for helping me move."

    async def test_files_are_private(self, app, client):
        resp = await client.post(
            "/v1/memories",
            files={"file": ("card.txt", b"grandma's private letter", "text/plain")},
            data={"sender_name": "Grandma"},
        )
        url = resp.json()["original_image_url"]

        assert (await client.get("/v1/files/*")).status_code == 404

        async def someone_else():
            return AuthenticatedUser(user_id="someone-else")

        app.dependency_overrides[get_user] = someone_else
        assert (await client.get(url)).status_code == 404
        assert (await client.get("/v1/files/*")).status_code == 404

    async def test_nothing_to_save(self, client):
        resp = await client.post("/v1/memories", data={"sender_name": "Grandma"})
        assert resp.status_code == 400

    async def test_unknown_source_type(self, client):
        resp = await client.post("/v1/memories", data={"text": "hi", "source_type": "fax"})
        assert resp.status_code == 400

    async def test_transcribe_preview(self, client):
        resp = await client.post(
            "/v1/memories/transcribe",
            files={"file": ("note.md", b"  You made my week.  ", "text/markdown")},
        )
        assert resp.json()["text"] == "You made my week."
        assert (await client.get("/v1/memories")).json() == []

    async def test_list_get_and_search(self, client):
        memory = await _create_memory(client)
        await _create_memory(client, "Love you, Mom", sender_name="Dad")

        assert len((await client.get("/v1/memories")).json()) == 2
        found = (await client.get("/v1/memories", params={"q": "mom"})).json()
        assert [m["sender_name"] for m in found] == ["Dad"]

        detail = (await client.get(f"/v1/memories/{memory['id']}")).json()
        assert detail["entries"][0]["id"] == memory["entries"][0]["id"]
        assert (await client.get("/v1/memories/missing")).status_code == 404

    async def test_entries_and_themes(self, client):
        await _create_memory(client)
        await _create_memory(client, "Thanks for the help with the garden")
        await _create_memory(client, "Love you, Mom")

        themes = (await client.get("/v1/themes")).json()
        assert themes[0] == {"theme": "Support & Kindness", "count": 2}

        entries = (await client.get("/v1/entries", params={"theme": "Family Support"})).json()
        assert len(entries) == 1

    async def test_theme_suggestions_follow_the_season(self, client):
        body = (await client.get("/v1/themes/suggestions")).json()

        assert body["season"] == "winter"
        assert body["suggestions"][0] == "Warmth"
        assert "Family Support" in body["categories"]["Relationships"]


class TestReflections:
    async def test_save_and_list(self, client):
        entry_id = (await _create_memory(client))["entries"][0]["id"]
        await client.get("/v1/daily")

        resp = await client.post("/v1/reflections", json={"entry_id": entry_id, "text": "  Call Grandma.  "})
        assert resp.status_code == 200
        assert resp.json()["text"] == "Call Grandma."

        daily = (await client.get("/v1/daily")).json()
        assert daily["reflection_id"] == resp.json()["id"]
        assert len((await client.get("/v1/reflections")).json()) == 1

    async def test_empty_text(self, client):
        entry_id = (await _create_memory(client))["entries"][0]["id"]
        resp = await client.post("/v1/reflections", json={"entry_id": entry_id, "text": "   "})
        assert resp.status_code == 400

    async def test_unknown_entry(self, client):
        resp = await client.post("/v1/reflections", json={"entry_id": "missing", "text": "Hi"})
        assert resp.status_code == 404


class TestVoices:
    async def test_crud(self, client):
        resp = await client.put("/v1/voices", json={"sender_name": "Grandma", "voice_id": "v1"})
        assert resp.json()["sender_name"] == "Grandma"

        await client.put("/v1/voices", json={"sender_name": "grandma", "voice_id": "v2"})
        voices = (await client.get("/v1/voices")).json()
        assert [v["voice_id"] for v in voices] == ["v2"]

        resp = await client.post("/v1/voices/GRANDMA/default")
        assert resp.json()["is_default"] is True

        assert (await client.delete("/v1/voices/grandma")).status_code == 200
        assert (await client.delete("/v1/voices/grandma")).status_code == 404

    async def test_senders_and_presets(self, client):
        await _create_memory(client)
        assert (await client.get("/v1/voices/senders")).json() == ["Grandma"]
        presets = (await client.get("/v1/voices/presets")).json()
        assert {"name": "bella", "voice_id": speech.FALLBACK_VOICE_ID} in presets


class TestSpeech:
    async def test_not_configured(self, client):
        resp = await client.post("/v1/speech", json={"text": "Hello"})
        assert resp.status_code == 503
        assert "ELEVENLABS_API_KEY" in resp.json()["detail"]

    async def test_reads_entry_in_sender_voice(self, client, monkeypatch):
        _setenv(monkeypatch, "ELEVENLABS_API_KEY", "xi-key")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"mp3-bytes")

        speech.set_client(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        entry_id = (await _create_memory(client))["entries"][0]["id"]
        await client.put("/v1/voices", json={"sender_name": "Grandma", "voice_id": "grandma-voice"})

        resp = await client.post("/v1/speech", json={"entry_id": entry_id})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "audio/mpeg"
        assert resp.content == b"mp3-bytes"
        assert seen[0].url.path.endswith("/text-to-speech/grandma-voice")

    async def test_no_text(self, client):
        resp = await client.post("/v1/speech", json={})
        assert resp.status_code == 400


class TestAdmin:
    async def test_copy_memories(self, client):
        memory = await _create_memory(client)
        resp = await client.post("/v1/admin/memories/copy", json={
            "source_user_id": "dev-user",
            "target_user_id": "grandkid",
            "memory_ids": [memory["id"]],
        })
        assert resp.json() == {"copied": 1}

    async def test_requires_admin(self, app, client):
        async def member():
            return AuthenticatedUser(user_id="member", roles=[])

        app.dependency_overrides[get_user] = member
        resp = await client.post("/v1/admin/memories/copy", json={
            "source_user_id": "a", "target_user_id": "b", "memory_ids": ["m"],
        })
        assert resp.status_code == 403

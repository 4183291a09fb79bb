"""End-to-end tests for the chat endpoint."""

from unittest.mock import patch

from backend.app.core.errors import UpstreamFailure
from backend.app.memory.manager import CompanionKey
from backend.app.vector_store.repository import VectorDocument


def _history_key(companion, user_id="user-1"):
    return CompanionKey(companion.id, "test-model", user_id).redis_key()


class TestChatEndpoint:
    def test_unauthenticated_returns_401_without_writes(self, client, companion, companions, history):
        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"})

        assert response.status_code == 401
        assert response.text == "Unauthorized"
        assert companions.count_messages() == 0
        assert history.mutations == 0

    def test_invalid_token_returns_401(self, client, companion):
        response = client.post(
            f"/api/chat/{companion.id}",
            json={"prompt": "hi"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_rate_limited_before_companion_lookup(self, client, resources, companion, companions, auth_headers):
        resources.rate_limiter.limit = 0

        with patch.object(
            companions, "get_with_recent_messages", wraps=companions.get_with_recent_messages
        ) as lookup:
            response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert response.status_code == 429
        lookup.assert_not_called()
        assert companions.count_messages() == 0

    def test_unknown_companion_returns_404(self, client, auth_headers):
        response = client.post("/api/chat/does-not-exist", json={"prompt": "hi"}, headers=auth_headers)

        assert response.status_code == 404
        assert response.text == "Companion not found"

    def test_reply_is_comma_stripped_persisted_and_streamed(
        self, client, companion, companions, history, model_client, auth_headers
    ):
        model_client.reply = "Hello, friend,!\nthis line is dropped"

        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi Sage"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.text == "Hello friend!"

        transcript = companions.get_transcript(companion.id, "user-1")
        assert [(m.role, m.content) for m in transcript.messages] == [
            ("user", "hi Sage"),
            ("system", "Hello friend!"),
        ]
        members = history.sets[_history_key(companion)]
        assert "Hello friend!" in members
        assert "User: hi Sage\n" in members

    def test_short_reply_streams_without_persisting(self, client, companion, companions, history, model_client, auth_headers):
        model_client.reply = "k"

        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.text == "k"
        transcript = companions.get_transcript(companion.id, "user-1")
        assert [m.role for m in transcript.messages] == ["user"]
        assert "k" not in history.sets[_history_key(companion)]

    def test_history_is_seeded_on_first_turn(self, client, companion, history, auth_headers):
        client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        members = history.sets[_history_key(companion)]
        assert members["Human: Hi Sage"] == 0
        assert members["Sage: Hello, seeker."] == 1

    def test_prompt_includes_persona_dialogue_and_memories(
        self, client, companion, companions, vector_index, model_client, auth_headers
    ):
        companions.add_message(companion.id, "user-1", "user", "what do you drink")
        companions.add_message(companion.id, "user-1", "system", "Mostly green tea")
        vector_index.search.return_value = [VectorDocument(page_content="Sage brews tea at dawn", score=0.8)]

        client.post(f"/api/chat/{companion.id}", json={"prompt": "tell me more"}, headers=auth_headers)

        prompt = model_client.prompts[-1]
        assert "You are Sage." in prompt
        assert "You are a calm philosopher who answers briefly." in prompt
        assert "User: what do you drink" in prompt
        assert "Sage: Mostly green tea" in prompt
        assert "Sage brews tea at dawn" in prompt
        assert vector_index.search.await_args.kwargs["namespace"] == f"{companion.id}.txt"

    def test_repeated_prompt_adds_directive(self, client, companion, companions, model_client, auth_headers):
        companions.add_message(companion.id, "user-1", "user", "tell me a joke")

        client.post(f"/api/chat/{companion.id}", json={"prompt": "tell me a joke"}, headers=auth_headers)

        assert 'do not reuse this previous response: "tell me a joke"' in model_client.prompts[-1]

    def test_messages_are_scoped_per_user(self, client, companion, companions, model_client, auth_headers):
        companions.add_message(companion.id, "someone-else", "user", "secret from another user")

        client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert "secret from another user" not in model_client.prompts[-1]

    def test_vector_failure_degrades_gracefully(self, client, companion, vector_index, auth_headers):
        vector_index.search.side_effect = RuntimeError("qdrant down")

        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.text == "Hello there!"

    def test_model_failure_returns_500_and_keeps_user_message(
        self, client, companion, companions, model_client, auth_headers
    ):
        model_client.error = UpstreamFailure("timeout")

        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert response.status_code == 500
        assert response.text == "Internal Error"
        transcript = companions.get_transcript(companion.id, "user-1")
        assert [m.content for m in transcript.messages] == ["hi"]

    def test_unexpected_error_returns_500(self, client, companion, model_client, auth_headers):
        model_client.error = ValueError("bad state")

        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert response.status_code == 500
        assert response.text == "Internal Error"

    def test_comma_stripping_disabled(self, client, resources, companion, model_client, auth_headers):
        resources.pipeline.reconciler.strip_commas = False
        model_client.reply = "Hello, friend"

        response = client.post(f"/api/chat/{companion.id}", json={"prompt": "hi"}, headers=auth_headers)

        assert response.text == "Hello, friend"


class TestChatRequestBody:
    def test_malformed_body_without_auth_is_401(self, client, companion):
        response = client.post(
            f"/api/chat/{companion.id}",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 401
        assert response.text == "Unauthorized"

    def test_malformed_json_is_plain_500(self, client, companion, history, auth_headers):
        response = client.post(
            f"/api/chat/{companion.id}",
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 500
        assert response.text == "Internal Error"
        assert response.headers["content-type"].startswith("text/plain")
        assert history.mutations == 0

    def test_missing_prompt_is_plain_500(self, client, companion, companions, auth_headers):
        response = client.post(f"/api/chat/{companion.id}", json={}, headers=auth_headers)

        assert response.status_code == 500
        assert response.text == "Internal Error"
        assert companions.count_messages() == 0

    def test_non_string_prompt_is_plain_500(self, client, companion, auth_headers):
        response = client.post(f"/api/chat/{companion.id}", json={"prompt": 5}, headers=auth_headers)

        assert response.status_code == 500
        assert response.text == "Internal Error"


class TestTranscriptEndpoint:
    def test_returns_messages_oldest_first(self, client, companion, companions, auth_headers):
        companions.add_message(companion.id, "user-1", "user", "first")
        companions.add_message(companion.id, "user-1", "system", "second")

        response = client.get(f"/api/chat/{companion.id}", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Sage"
        assert body["message_count"] == 2
        assert [m["content"] for m in body["messages"]] == ["first", "second"]

    def test_unknown_companion(self, client, auth_headers):
        assert client.get("/api/chat/missing", headers=auth_headers).status_code == 404


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_platform_config(client, settings):
    body = client.get("/api/v1/platform/config").json()
    assert body["model"] == settings.groq_model
    assert body["repetition_threshold"] == settings.repetition_threshold
    assert "Vector Search" in client.get("/api/v1/platform/architecture").json()["diagram"]

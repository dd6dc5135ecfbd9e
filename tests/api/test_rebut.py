"""
Tests for the rebuttal endpoint.
"""
import pytest

from deckslayer.config import settings


class TestRebut:

    def test_judgement_returned(self, client):
        response = client.post("/rebut", json={"question": "Why you?", "answer": "We have LOIs.", "context": "Seed"})

        assert response.status_code == 200
        assert response.json() == {"judgement": "Sarah sighs. LOIs are not revenue."}
        assert "X-RateLimit-Remaining" in response.headers

    def test_legacy_field_names_accepted(self, client):
        response = client.post("/rebut", json={"killerQuestion": "Why now?", "userAnswer": "Regulation changed."})

        assert response.status_code == 200

    def test_anonymous_callers_allowed(self, client, user):
        user.current = None

        response = client.post("/rebut", json={"question": "Why now?", "answer": "Because."})

        assert response.status_code == 200

    @pytest.mark.parametrize("payload", [
        {"question": "Why you?"},
        {"answer": "We have LOIs."},
        {"question": "   ", "answer": "We have LOIs."},
        ["not", "an", "object"],
    ])
    def test_incomplete_payload_is_400(self, client, payload):
        response = client.post("/rebut", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing data"}

    def test_malformed_json_is_400(self, client):
        response = client.post("/rebut", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400

    def test_rate_limited_per_caller(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_rebuttal_max_requests", 1)
        payload = {"question": "Why you?", "answer": "Because."}

        assert client.post("/rebut", json=payload).status_code == 200
        response = client.post("/rebut", json=payload)

        assert response.status_code == 429
        assert "resetIn" in response.json()

    def test_agent_failure_uses_rebuttal_message(self, client, api_state):
        from pydantic_ai import Agent
        from pydantic_ai.models.function import FunctionModel

        async def down(messages, info):
            raise RuntimeError("Request timed out")

        api_state.rebuttal.agent = Agent(FunctionModel(down), output_type=str)

        response = client.post("/rebut", json={"question": "Why you?", "answer": "Because."})

        assert response.status_code == 500
        assert response.json() == {"error": "Interrogation failed"}

from __future__ import annotations

import pytest

from aris.learning.worker import LearningRequest


@pytest.mark.anyio
async def test_start_session_schedules_background_run(authed_client, learning_runner, sessions_repo, user) -> None:
  response = await authed_client.post("/v1/learning/sessions", json={"max_emails": 100})

  assert response.status_code == 202
  body = response.json()
  assert body["status"] == "starting"
  assert body["reused"] is False
  assert body["message"] == "Learning session started. Poll the session for progress."

  learning_runner.assert_awaited_once()
  request = learning_runner.await_args.args[0]
  assert isinstance(request, LearningRequest)
  assert request.session_id == body["session_id"]
  assert request.user_id == str(user.id)
  assert request.tier == "starter"
  assert request.max_emails == 100
  assert (await sessions_repo.get_session(body["session_id"])).status == "starting"


@pytest.mark.anyio
async def test_second_start_reuses_running_session(authed_client, learning_runner) -> None:
  first = (await authed_client.post("/v1/learning/sessions", json={})).json()
  second = await authed_client.post("/v1/learning/sessions", json={})

  assert second.status_code == 202
  assert second.json()["session_id"] == first["session_id"]
  assert second.json()["reused"] is True
  assert second.json()["message"] == "A learning session is already running."
  learning_runner.assert_awaited_once()


@pytest.mark.anyio
@pytest.mark.parametrize("payload", [{"max_emails": 0}, {"max_emails": 5001}, {"unexpected": True}, {"organization_id": 42}])
async def test_invalid_start_payload_is_400(authed_client, learning_runner, payload) -> None:
  response = await authed_client.post("/v1/learning/sessions", json=payload)

  assert response.status_code == 400
  assert response.json()["error"] == "Invalid request"
  assert "input" not in response.json()["details"][0]
  learning_runner.assert_not_awaited()


@pytest.mark.anyio
async def test_start_with_unknown_account_is_404(authed_client, learning_runner) -> None:
  response = await authed_client.post("/v1/learning/sessions", json={"account_id": "5b0c7a8e-3f1d-4c56-9a51-7d2f3e8b9c10"})

  assert response.status_code == 404
  assert response.json()["error"] == "Email account not found."
  learning_runner.assert_not_awaited()


@pytest.mark.anyio
async def test_start_with_malformed_organization_is_400(authed_client) -> None:
  response = await authed_client.post("/v1/learning/sessions", json={"organization_id": "acme"})

  assert response.status_code == 400
  assert response.json()["error"] == "A valid organization_id is required."


@pytest.mark.anyio
async def test_poll_list_and_cancel(authed_client) -> None:
  session_id = (await authed_client.post("/v1/learning/sessions", json={})).json()["session_id"]

  polled = await authed_client.get(f"/v1/learning/sessions/{session_id}")
  assert polled.status_code == 200
  assert polled.json()["progress"] == 0
  assert polled.json()["message"] == "Preparing to analyze your emails..."
  assert polled.json()["estimated_remaining_seconds"] is None

  listed = await authed_client.get("/v1/learning/sessions")
  assert [item["session_id"] for item in listed.json()["sessions"]] == [session_id]

  cancelled = await authed_client.post(f"/v1/learning/sessions/{session_id}/cancel")
  assert cancelled.status_code == 200
  assert cancelled.json()["status"] == "cancelled"

  again = await authed_client.post(f"/v1/learning/sessions/{session_id}/cancel")
  assert again.status_code == 409
  assert again.json()["error"] == "Learning session is already cancelled."


@pytest.mark.anyio
async def test_unknown_session_is_404(authed_client) -> None:
  response = await authed_client.get("/v1/learning/sessions/does-not-exist")

  assert response.status_code == 404
  assert response.json()["error"] == "Learning session not found."


@pytest.mark.anyio
async def test_selection_preview_without_accounts(authed_client) -> None:
  response = await authed_client.get("/v1/learning/selection/preview", params={"max_emails": 50})

  assert response.status_code == 200
  body = response.json()
  assert body["tier"] == "starter"
  assert body["max_emails"] == 50
  assert body["total_selected"] == 0
  assert body["quality_score"] == 0.0
  assert body["recommendations"][0] == "Learning optimized for draft generation with 70% sent emails"

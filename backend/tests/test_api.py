import pytest

from app.core.config import settings

from conftest import PASSWORD, register

API = settings.API_V1_STR


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/goals"),
        ("post", "/goals"),
        ("patch", "/steps/abc"),
        ("get", "/messages?sessionId=chat-1"),
        ("post", "/chat"),
        ("get", "/analytics"),
        ("get", "/profile"),
    ],
)
async def test_endpoints_require_a_session(client, method, path):
    resp = await client.request(method.upper(), f"{API}{path}", json={})

    assert resp.status_code == 401
    assert resp.json()["code"] == "not_authenticated"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client):
    resp = await client.get(f"{API}/goals", headers={"Authorization": "Bearer nope"})

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_sign_up_then_confirm_then_sign_in(client, backend):
    resp = await client.post(f"{API}/auth/sign-up", json={"email": "Zoe@Example.com", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["needs_confirmation"] is True
    assert body["session"] is None

    resp = await client.post(f"{API}/auth/sign-in", json={"email": "zoe@example.com", "password": PASSWORD})
    assert resp.status_code == 403
    assert resp.json()["code"] == "email_not_confirmed"

    await backend.confirm_email(body["identity"]["id"])
    resp = await client.post(f"{API}/auth/sign-in", json={"email": "zoe@example.com", "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.json()["session"]["identity"]["email"] == "zoe@example.com"


@pytest.mark.asyncio
async def test_sign_up_duplicate_email_conflicts(client, backend):
    await register(backend, "yan@example.com")

    resp = await client.post(f"{API}/auth/sign-up", json={"email": "yan@example.com", "password": PASSWORD})

    assert resp.status_code == 409
    assert resp.json()["code"] == "email_already_registered"


@pytest.mark.asyncio
async def test_wrong_password_is_unauthorized(client, backend):
    await register(backend, "xena@example.com")

    resp = await client.post(f"{API}/auth/sign-in", json={"email": "xena@example.com", "password": "nope-nope"})

    assert resp.status_code == 401
    assert resp.json()["code"] == "invalid_credentials"


@pytest.mark.asyncio
async def test_session_and_sign_out(client, auth_headers):
    resp = await client.get(f"{API}/auth/session", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["identity"]["email"] == "alice@example.com"

    resp = await client.post(f"{API}/auth/sign-out", headers=auth_headers)
    assert resp.status_code == 200

    resp = await client.get(f"{API}/goals", headers=auth_headers)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_profile_is_provisioned_lazily_and_patchable(client, auth_headers):
    resp = await client.get(f"{API}/profile", headers=auth_headers)
    assert resp.status_code == 200
    profile = resp.json()
    assert profile["name"] == "alice"
    assert profile["onboarding_completed"] is False

    resp = await client.patch(
        f"{API}/profile",
        headers=auth_headers,
        json={"onboarding_completed": True, "income_goal": 5000, "obstacles": ["time"]},
    )
    assert resp.status_code == 200
    assert resp.json()["income_goal"] == 5000

    resp = await client.get(f"{API}/profile", headers=auth_headers)
    assert resp.json()["onboarding_completed"] is True
    assert resp.json()["id"] == profile["id"]


@pytest.mark.asyncio
async def test_profile_patch_rejects_unknown_fields(client, auth_headers):
    resp = await client.patch(f"{API}/profile", headers=auth_headers, json={"email": "evil@example.com"})

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_profile_patch_rejects_null_onboarding_flag(client, auth_headers):
    await client.get(f"{API}/profile", headers=auth_headers)

    resp = await client.patch(f"{API}/profile", headers=auth_headers, json={"onboarding_completed": None})

    assert resp.status_code == 422
    resp = await client.get(f"{API}/profile", headers=auth_headers)
    assert resp.json()["onboarding_completed"] is False


@pytest.mark.asyncio
async def test_goal_lifecycle_over_http(client, auth_headers):
    resp = await client.post(f"{API}/goals", headers=auth_headers, json={"title": "Learn Spanish", "category": "education"})
    assert resp.status_code == 200
    goal = resp.json()
    assert goal["progress"] == 0
    assert goal["status"] == "active"
    assert len(goal["steps"]) == 4

    for i, step in enumerate(goal["steps"], start=1):
        resp = await client.patch(f"{API}/steps/{step['id']}", headers=auth_headers, json={"completed": True})
        assert resp.status_code == 200
        body = resp.json()
        assert body["step"]["completed"] is True
        assert body["goal"]["progress"] == 25 * i
        assert body["warning"] is None

    assert body["goal"]["status"] == "completed"

    resp = await client.get(f"{API}/goals", headers=auth_headers)
    assert [g["id"] for g in resp.json()] == [goal["id"]]


@pytest.mark.asyncio
async def test_unknown_step_is_404(client, auth_headers):
    resp = await client.patch(f"{API}/steps/missing", headers=auth_headers, json={"completed": True})

    assert resp.status_code == 404
    assert resp.json()["code"] == "step_not_found"


@pytest.mark.asyncio
async def test_messages_require_session_id(client, auth_headers):
    resp = await client.get(f"{API}/messages", headers=auth_headers)

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_chat_requires_client_key(client, auth_headers):
    resp = await client.post(f"{API}/chat", headers=auth_headers, json={"sessionId": "chat-1", "message": "hi"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "api_key_required"


@pytest.mark.asyncio
async def test_chat_round_trip(client, auth_headers, coach_replies):
    headers = {**auth_headers, settings.COACH_KEY_HEADER: "sk-test"}

    resp = await client.post(f"{API}/chat", headers=headers, json={"sessionId": "chat-1", "message": "Help me focus"})
    assert resp.status_code == 200
    assert resp.json()["message"] == coach_replies["content"]
    assert resp.json()["messageId"] is not None

    resp = await client.get(f"{API}/messages", headers=auth_headers, params={"sessionId": "chat-1"})
    assert [(m["sender"], m["content"]) for m in resp.json()] == [
        ("user", "Help me focus"),
        ("assistant", coach_replies["content"]),
    ]


@pytest.mark.asyncio
async def test_chat_provider_failure_is_502(client, auth_headers, coach_replies):
    coach_replies["status"] = 500
    headers = {**auth_headers, settings.COACH_KEY_HEADER: "sk-test"}

    resp = await client.post(f"{API}/chat", headers=headers, json={"sessionId": "chat-1", "message": "Hello"})

    assert resp.status_code == 502
    assert resp.json()["detail"] == "AI error, check your API key"


@pytest.mark.asyncio
async def test_analytics_over_http(client, auth_headers):
    await client.post(f"{API}/goals", headers=auth_headers, json={"title": "Ship an app"})

    resp = await client.get(f"{API}/analytics", headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_goals"] == 1
    assert body["total_steps"] == 4
    assert body["goals_by_status"]["active"] == 1

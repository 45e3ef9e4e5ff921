import httpx
import pytest

from nacos_vote.backend import BackendClient, raise_for_body
from nacos_vote.errors import ConflictError, NetworkError, SessionExpiredError, ValidationError
from nacos_vote.schemas import AdminLoginRequest, SignInRequest

SIGN_IN = SignInRequest(
    institutionalEmail="2203sen001@alhikmah.edu.ng",
    personalEmail="student@gmail.com",
    matricNumber="22/03sen001",
    fullName="John Doe",
    deviceId="device-0001",
)


@pytest.mark.parametrize("body, message, fatal", [
    ({"alreadyVoted": True}, "You have already voted.", False),
    ({"emailBlocked": True}, "This personal email has already been used by another student.", False),
    ({"deviceBlocked": True}, "This device has already been used by another user.", True),
    ({"error": "Duplicate IP", "duplicateIP": True}, "Duplicate IP", True),
])
def test_conflict_flags(body, message, fatal):
    with pytest.raises(ConflictError) as excinfo:
        raise_for_body(200, body)
    assert excinfo.value.message == message
    assert excinfo.value.fatal is fatal


def test_status_mapping():
    with pytest.raises(SessionExpiredError):
        raise_for_body(401, {"error": "Invalid session token"})
    with pytest.raises(ConflictError):
        raise_for_body(409, {"error": "Vote exists"})
    with pytest.raises(NetworkError):
        raise_for_body(502, {})
    with pytest.raises(ValidationError, match="Matric number is invalid"):
        raise_for_body(400, {"error": "Matric number is invalid"})
    with pytest.raises(ValidationError, match="Failed to submit vote"):
        raise_for_body(422, {}, "Failed to submit vote.")
    # error body on a 200 without ok
    with pytest.raises(ValidationError):
        raise_for_body(200, {"error": "Candidate not found"})
    raise_for_body(200, {"ok": True})
    raise_for_body(200, ["President"])


@pytest.mark.asyncio
async def test_sign_in_returns_session_fields(backend_client, fake_backend):
    result = await backend_client.sign_in(SIGN_IN)

    assert result.sessionToken == "token-abc"
    assert result.remainingPositions == ["President", "Treasurer"]
    assert fake_backend.sign_ins[0]["deviceId"] == "device-0001"


@pytest.mark.asyncio
async def test_sign_in_already_voted(backend_client, fake_backend):
    fake_backend.overrides[("POST", "/api/sign-in")] = (200, {"alreadyVoted": True})

    with pytest.raises(ConflictError, match="You have already voted."):
        await backend_client.sign_in(SIGN_IN)


@pytest.mark.asyncio
async def test_candidates_path_is_quoted(backend_client, fake_backend):
    fake_backend.candidates["Vice President"] = [{"id": "candidate211", "name": "Sadiq Fareedah Adedoyin"}]

    candidates = await backend_client.get_candidates("Vice President")

    assert [c.name for c in candidates] == ["Sadiq Fareedah Adedoyin"]
    assert ("GET", "/api/candidates/Vice President") in fake_backend.calls


@pytest.mark.asyncio
async def test_transport_failure_is_network_error(fake_backend):
    fake_backend.overrides[("GET", "/api/positions")] = httpx.ConnectTimeout("timed out")
    client = fake_backend.client()

    with pytest.raises(NetworkError, match="Failed to connect to the server"):
        await client.get_positions()
    await client.aclose()


@pytest.mark.asyncio
async def test_non_json_response_is_network_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
    client = BackendClient(base_url="http://backend.test", transport=transport)

    with pytest.raises(NetworkError):
        await client.get_positions()


@pytest.mark.asyncio
async def test_admin_calls_send_bearer_token(backend_client):
    await backend_client.admin_login("id-token-1", AdminLoginRequest(email="admin@nacosvoting.edu", password="x"))
    tallies = await backend_client.admin_votes("id-token-1")
    assert [c.votes for c in tallies["President"]] == [1, 4]

    with pytest.raises(SessionExpiredError):
        await backend_client.admin_votes("stale-token")


@pytest.mark.asyncio
async def test_unknown_backup_kind(backend_client):
    with pytest.raises(ValidationError):
        await backend_client.backup_download("everything")


@pytest.mark.asyncio
async def test_forward_relays_status_and_body(backend_client, fake_backend):
    status, body = await backend_client.forward("POST", "missing/route", json={"a": 1})
    assert status == 404
    assert body == {"error": "Not found"}

    status, body = await backend_client.forward("GET", "positions")
    assert status == 200
    assert body == ["President", "Treasurer"]


@pytest.mark.asyncio
async def test_malformed_bodies_are_network_errors(backend_client, fake_backend):
    fake_backend.overrides[("GET", "/api/public/votes")] = (200, ["not", "a", "summary"])
    fake_backend.overrides[("GET", "/api/public/all-votes")] = (200, {"unexpected": True})
    fake_backend.overrides[("GET", "/api/admin/votes")] = (200, ["President"])
    fake_backend.overrides[("GET", "/api/backup/status")] = (200, "ok")

    for call in (backend_client.public_votes, backend_client.all_votes, backend_client.backup_status):
        with pytest.raises(NetworkError):
            await call()
    with pytest.raises(NetworkError):
        await backend_client.admin_votes("id-token-1")

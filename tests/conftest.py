import json

import httpx
import pytest

from nacos_vote import config
from nacos_vote.backend import BackendClient
from nacos_vote.errors import ValidationError
from nacos_vote.models.session_model import Session
from nacos_vote.storage import LocalStorage, MemoryBrowserStore
from nacos_vote.wizard import StoredSession, VotingWizardController

BACKEND_URL = "http://backend.test"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeVotingBackend:
    """In-process stand-in for the remote voting API, served through httpx.MockTransport."""

    def __init__(self):
        self.positions = ["President", "Treasurer"]
        self.candidates = {
            "President": [
                {"id": "candidate111", "name": "Alowonle Olayinka Abdulrazzak"},
                {"id": "candidate112", "name": "Fadlullah Folajomi Babalola"},
            ],
            "Treasurer": [
                {"id": "candidate411", "name": "Surajo Umar Sadiq"},
                {"id": "candidate412", "name": "Abubakar Faruku Saad"},
            ],
        }
        self.remaining_positions = list(self.positions)
        self.sign_ins = []
        self.votes = []
        self.completions = []
        self.calls = []
        # (method, path) -> (status, body) or an exception to raise
        self.overrides = {}
        # path -> asyncio.Event the request waits on
        self.gates = {}
        # called with the request before it is answered
        self.on_request = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> BackendClient:
        return BackendClient(base_url=BACKEND_URL, timeout=5, transport=self.transport())

    async def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        if path in self.gates:
            await self.gates[path].wait()
        if self.on_request is not None:
            self.on_request(request)

        override = self.overrides.get((method, path))
        if isinstance(override, Exception):
            raise override
        if override is not None:
            status, body = override
            return httpx.Response(status, json=body)

        body = json.loads(request.content) if request.content else None
        return self.route(method, path, body, request)

    def route(self, method, path, body, request) -> httpx.Response:
        if method == "GET" and path == "/api/positions":
            return httpx.Response(200, json=self.positions)
        if method == "GET" and path.startswith("/api/candidates/"):
            position = path[len("/api/candidates/"):]
            return httpx.Response(200, json=self.candidates.get(position, []))
        if method == "POST" and path == "/api/sign-in":
            self.sign_ins.append(body)
            return httpx.Response(200, json={
                "institutionalEmail": body["institutionalEmail"],
                "sessionToken": "token-abc",
                "remainingPositions": self.remaining_positions,
            })
        if method == "POST" and path == "/api/vote":
            self.votes.append(body)
            return httpx.Response(200, json={"ok": True})
        if method == "POST" and path == "/api/complete-voting":
            self.completions.append(body)
            return httpx.Response(200, json={"ok": True})
        if method == "GET" and path == "/api/public/votes":
            return httpx.Response(200, json={
                "voteCounts": {
                    "President": [
                        {"name": "Alowonle Olayinka Abdulrazzak", "votes": 3},
                        {"name": "Fadlullah Folajomi Babalola", "votes": 7},
                    ],
                    "Treasurer": [
                        {"name": "Surajo Umar Sadiq", "votes": 0},
                        {"name": "Abubakar Faruku Saad", "votes": 0},
                    ],
                },
                "totalValidVotes": 10,
                "totalVotes": 12,
                "lastUpdated": "2025-10-11T13:00:00Z",
            })
        if method == "GET" and path == "/api/public/all-votes":
            return httpx.Response(200, json=[
                {
                    "id": "v1",
                    "userEmail": "2203sen001@alhikmah.edu.ng",
                    "matricNumber": "22/03sen001",
                    "position": "President",
                    "timestamp": {"_seconds": 1760184000, "_nanoseconds": 0},
                },
            ])
        if method == "POST" and path == "/api/admin/login":
            if request.headers.get("Authorization") != "Bearer id-token-1":
                return httpx.Response(401, json={"error": "Unauthorized"})
            return httpx.Response(200, json={"ok": True})
        if method == "GET" and path == "/api/admin/votes":
            if request.headers.get("Authorization") != "Bearer id-token-1":
                return httpx.Response(401, json={"error": "Invalid token"})
            return httpx.Response(200, json={
                "President": [{"name": "Isah Ahmad", "votes": 1}, {"name": "Buhari Muhammad Maaji", "votes": 4}],
            })
        if method == "GET" and path == "/api/backup/status":
            return httpx.Response(200, json={
                "message": "Backup service ready", "counts": {"users": 5, "votes": 9, "candidates": 4},
            })
        if method == "GET" and path.startswith("/api/backup/"):
            return httpx.Response(200, json={"kind": path.rsplit("/", 1)[-1], "rows": [1, 2]})
        return httpx.Response(404, json={"error": "Not found"})


async def fake_identity_provider(email: str, password: str) -> str:
    if password != "right-password":
        raise ValidationError("Login failed: INVALID_LOGIN_CREDENTIALS")
    return "id-token-1"


@pytest.fixture
def fake_backend():
    return FakeVotingBackend()


@pytest.fixture
def backend_client(fake_backend):
    return fake_backend.client()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryBrowserStore()


@pytest.fixture
def local_storage(memory_store):
    return LocalStorage(memory_store, "browser-1")


@pytest.fixture
def ports(local_storage):
    return StoredSession(local_storage)


@pytest.fixture
def session(ports, clock):
    s = Session(
        institutionalEmail="2203sen001@alhikmah.edu.ng",
        sessionToken="token-abc",
        remainingPositions=["President", "Treasurer"],
        deviceId="device-0001",
        expiresAt=clock() + 600,
    )
    ports.save_session(s)
    return s


@pytest.fixture
def controller(backend_client, ports, clock, session):
    return VotingWizardController(backend_client, ports, clock=clock)


@pytest.fixture
def no_voting_window(monkeypatch):
    monkeypatch.setattr(config, "VOTING_START", None)
    monkeypatch.setattr(config, "VOTING_END", None)

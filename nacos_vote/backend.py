# nacos_vote/backend.py
"""HTTP client for the remote voting backend.

Contract:
- All methods are async (httpx.AsyncClient)
- All methods raise a `VotingError` subclass on failure
- All methods return parsed JSON or pydantic models
- No voting logic, only transport and error mapping
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
from pydantic import ValidationError as SchemaError

from nacos_vote import config
from nacos_vote.errors import ConflictError, NetworkError, SessionExpiredError, ValidationError
from nacos_vote.models.vote_model import Candidate
from nacos_vote.schemas import (
    AdminLoginRequest,
    BackupStatus,
    CandidateTally,
    CompleteVotingRequest,
    ResultsSummary,
    SignInRequest,
    SignInResult,
    VoteLogEntry,
    VoteRequest,
)

logger = logging.getLogger(__name__)

# body flag -> (message, fatal)
CONFLICT_FLAGS = {
    "alreadyVoted": ("You have already voted.", False),
    "emailBlocked": ("This personal email has already been used by another student.", False),
    "deviceBlocked": ("This device has already been used by another user.", True),
    "ipBlocked": ("This network has already been used by another voter.", True),
    "duplicateIP": ("A ballot from this network has already been recorded. Please sign in again.", True),
}

BACKUP_PATHS = {
    "full": "/api/backup/download",
    "users": "/api/backup/users",
    "votes-table": "/api/backup/votes-table",
}


def raise_for_body(status_code: int, body: Any, default: Optional[str] = None) -> None:
    """Raise the matching VotingError for a backend answer, or return if it is a success."""
    data = body if isinstance(body, dict) else {}
    error = data.get("error")

    for flag, (message, fatal) in CONFLICT_FLAGS.items():
        if data.get(flag):
            raise ConflictError(error or message, status_code=status_code, fatal=fatal)

    if status_code in (401, 403):
        raise SessionExpiredError(error or "Invalid user or device. Please sign in again.", status_code)
    if status_code == 409:
        raise ConflictError(error, status_code)
    if status_code >= 500:
        raise NetworkError("Server error. Please try again later or contact support.", status_code)
    if status_code >= 400 or (error and not data.get("ok")):
        if error and "already voted" in str(error).lower():
            raise ConflictError(error, status_code)
        raise ValidationError(error or default, status_code)


class BackendClient:
    """One method per backend endpoint."""

    def __init__(self, base_url: str = None, timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or config.BACKEND_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.BACKEND_TIMEOUT
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Tuple[int, Any]:
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning("Backend request %s %s failed: %s", method, path, e)
            raise NetworkError()
        if not response.content:
            return response.status_code, {}
        try:
            return response.status_code, response.json()
        except ValueError:
            logger.error("Backend returned non-JSON for %s %s (HTTP %s)", method, path, response.status_code)
            raise NetworkError("Unexpected response from the server.", response.status_code)

    async def _call(self, method: str, path: str, default_error: str = None, **kwargs) -> Any:
        status_code, body = await self._request(method, path, **kwargs)
        raise_for_body(status_code, body, default_error)
        return body

    # --- Ballot ---

    async def get_positions(self) -> List[str]:
        body = await self._call("GET", "/api/positions", "Failed to load positions. Please try again.")
        if not isinstance(body, list):
            raise NetworkError("Failed to load positions. Please try again.")
        return [str(p) for p in body]

    async def get_candidates(self, position: str) -> List[Candidate]:
        body = await self._call(
            "GET", f"/api/candidates/{quote(position, safe='')}", "Failed to load candidates. Please try again."
        )
        try:
            return [Candidate.model_validate(c) for c in body]
        except (SchemaError, TypeError):
            raise NetworkError("Failed to load candidates. Please try again.")

    async def sign_in(self, request: SignInRequest) -> SignInResult:
        body = await self._call("POST", "/api/sign-in", json=request.model_dump(mode="json"))
        try:
            return SignInResult.model_validate(body)
        except SchemaError:
            raise NetworkError("Unexpected response from the server.")

    async def submit_vote(self, request: VoteRequest) -> Dict[str, Any]:
        return await self._call("POST", "/api/vote", "Failed to submit vote.", json=request.model_dump(mode="json"))

    async def complete_voting(self, request: CompleteVotingRequest) -> Dict[str, Any]:
        return await self._call(
            "POST", "/api/complete-voting", "Failed to complete voting.", json=request.model_dump(mode="json")
        )

    # --- Public read-only ---

    async def public_votes(self) -> ResultsSummary:
        body = await self._call("GET", "/api/public/votes", "Failed to load results")
        try:
            return ResultsSummary.model_validate(body)
        except SchemaError:
            raise NetworkError("Failed to load results")

    async def all_votes(self) -> List[VoteLogEntry]:
        body = await self._call("GET", "/api/public/all-votes", "Failed to fetch votes")
        try:
            return [VoteLogEntry.model_validate(v) for v in body or []]
        except (SchemaError, TypeError):
            raise NetworkError("Failed to fetch votes")

    # --- Admin ---

    async def admin_login(self, id_token: str, request: AdminLoginRequest) -> Dict[str, Any]:
        return await self._call(
            "POST",
            "/api/admin/login",
            "Admin login failed",
            json=request.model_dump(mode="json"),
            headers={"Authorization": f"Bearer {id_token}"},
        )

    async def admin_votes(self, token: str) -> Dict[str, List[CandidateTally]]:
        body = await self._call(
            "GET", "/api/admin/votes", "Failed to load data", headers={"Authorization": f"Bearer {token}"}
        )
        try:
            return {
                position: [CandidateTally.model_validate(c) for c in candidates]
                for position, candidates in (body or {}).items()
            }
        except (SchemaError, TypeError, AttributeError):
            raise NetworkError("Failed to load data")

    async def backup_status(self) -> BackupStatus:
        body = await self._call("GET", "/api/backup/status", "Cannot connect to backup service")
        try:
            return BackupStatus.model_validate(body)
        except SchemaError:
            raise NetworkError("Cannot connect to backup service")

    async def backup_download(self, kind: str) -> Any:
        if kind not in BACKUP_PATHS:
            raise ValidationError(f"Unknown backup '{kind}'.")
        return await self._call("GET", BACKUP_PATHS[kind], "Backup failed")

    # --- Pass-through ---

    async def forward(
        self, method: str, path: str, json: Any = None, params: Dict[str, str] = None, headers: Dict[str, str] = None
    ) -> Tuple[int, Any]:
        """Relay a request to `/api/{path}` untouched; raises NetworkError only on transport failure."""
        kwargs = {"params": params or None, "headers": headers or None}
        if method != "GET":
            kwargs["json"] = json
        return await self._request(method, f"/api/{path.lstrip('/')}", **kwargs)

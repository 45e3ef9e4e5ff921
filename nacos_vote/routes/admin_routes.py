import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as SchemaError

from nacos_vote.backend import BackendClient
from nacos_vote.dependencies import get_backend, get_identity_provider, get_local_storage, render
from nacos_vote.errors import SessionExpiredError, VotingError
from nacos_vote.schemas import AdminLoginRequest
from nacos_vote.storage import LocalStorage
from nacos_vote.tallies import rank_candidates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

ADMIN_TOKEN_KEY = "adminToken"


@router.get("/login")
def admin_login_page(request: Request, error: str = None):
    return render(request, "admin_login.html", error=error, email="")


@router.post("/login")
async def admin_login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
    identity_provider=Depends(get_identity_provider),
):
    def fail(message: str, status_code: int = 401):
        return render(request, "admin_login.html", status_code=status_code, error=message, email=email)

    try:
        credentials = AdminLoginRequest(email=email.strip(), password=password)
    except SchemaError:
        return fail("Enter a valid email and password.", 400)

    try:
        id_token = await identity_provider(credentials.email, credentials.password)
        await backend.admin_login(id_token, credentials)
        storage.set_item(ADMIN_TOKEN_KEY, id_token)
    except VotingError as e:
        logger.info("Admin login failed for %s: %s", credentials.email, e.message)
        return fail(e.message)

    logger.info("Admin %s signed in", credentials.email)
    return RedirectResponse("/admin/dashboard", status_code=303)


@router.get("/dashboard")
async def admin_dashboard(
    request: Request,
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
):
    token = storage.get_item(ADMIN_TOKEN_KEY)
    if not token:
        return RedirectResponse("/admin/login", status_code=303)
    try:
        vote_counts = await backend.admin_votes(token)
    except SessionExpiredError as e:
        storage.remove_item(ADMIN_TOKEN_KEY)
        return render(request, "admin_login.html", status_code=401, error=e.message, email="")
    except VotingError as e:
        return render(request, "admin_login.html", status_code=502, error=e.message, email="")
    tallies = {position: rank_candidates(candidates) for position, candidates in vote_counts.items()}
    return render(request, "admin_dashboard.html", tallies=tallies)


@router.post("/logout")
def admin_logout(storage: LocalStorage = Depends(get_local_storage)):
    storage.remove_item(ADMIN_TOKEN_KEY)
    return RedirectResponse("/admin/login", status_code=303)

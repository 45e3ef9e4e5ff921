import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as SchemaError

from nacos_vote import config
from nacos_vote.backend import BackendClient
from nacos_vote.dependencies import get_backend, get_browser_id, get_clock, get_local_storage, get_registry, render
from nacos_vote.errors import ConflictError, SessionExpiredError, VotingError
from nacos_vote.models.session_model import Session
from nacos_vote.schemas import SignInRequest
from nacos_vote.security import new_device_id
from nacos_vote.storage import LocalStorage
from nacos_vote.wizard import (
    TEMP_VOTES_KEY,
    StoredSession,
    VotingWizardController,
    WizardRegistry,
    WizardState,
    new_session_deadline,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Voter"])

DEVICE_KEY = "deviceId"


def sign_in_redirect(message: Optional[str] = None) -> RedirectResponse:
    url = "/" if not message else f"/?notice={quote(message)}"
    return RedirectResponse(url, status_code=303)


def voting_window_message(now: datetime = None) -> Optional[str]:
    now = now or datetime.now(timezone.utc)
    if config.VOTING_START and now < config.VOTING_START:
        start = config.VOTING_START.strftime("%I:%M %p on %B %d, %Y (UTC%z)")
        return f"Voting starts at {start}. Please wait."
    if config.VOTING_END and now >= config.VOTING_END:
        return "Voting has ended."
    return None


def ensure_device_id(storage: LocalStorage) -> str:
    device_id = storage.get_item(DEVICE_KEY)
    if not device_id:
        device_id = new_device_id()
        storage.set_item(DEVICE_KEY, device_id)
    return device_id


# ------------------------------
# Sign-in
# ------------------------------
@router.get("/")
def sign_in_page(request: Request, notice: Optional[str] = Query(None), storage: LocalStorage = Depends(get_local_storage)):
    try:
        ensure_device_id(storage)
        error = notice or voting_window_message()
    except VotingError as e:
        error = e.message
    return render(request, "sign_in.html", error=error, form={})


@router.post("/sign-in")
async def sign_in(
    request: Request,
    institutionalEmail: str = Form(""),
    personalEmail: str = Form(""),
    matricNumber: str = Form(""),
    fullName: str = Form(""),
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
    clock: Callable[[], float] = Depends(get_clock),
):
    form = {
        "institutionalEmail": institutionalEmail.strip(),
        "personalEmail": personalEmail.strip(),
        "matricNumber": matricNumber.strip(),
        "fullName": fullName.strip(),
    }

    def fail(message: str, status_code: int = 400):
        return render(request, "sign_in.html", status_code=status_code, error=message, form=form)

    closed = voting_window_message()
    if closed:
        return fail(closed, 403)
    if not all(form.values()):
        return fail("All fields are required")

    try:
        device_id = ensure_device_id(storage)
        payload = SignInRequest(**form, deviceId=device_id)
    except SchemaError:
        return fail("Invalid input. Please check your details.")
    except VotingError as e:
        return fail(e.message, 500)

    try:
        result = await backend.sign_in(payload)
    except VotingError as e:
        logger.info("Sign-in refused for %s: %s", form["institutionalEmail"], e.message)
        return fail(e.message, e.status_code if e.status_code and e.status_code >= 400 else 400)

    session = Session(
        institutionalEmail=result.institutionalEmail,
        sessionToken=result.sessionToken,
        remainingPositions=result.remainingPositions,
        deviceId=device_id,
        expiresAt=new_session_deadline(clock()),
    )
    try:
        StoredSession(storage).save_session(session)
        storage.remove_item(TEMP_VOTES_KEY)
    except VotingError as e:
        return fail(e.message, 500)

    registry.discard(browser_id)
    logger.info("Signed in %s with %d positions open", session.institutional_email, len(session.remaining_positions))
    return RedirectResponse("/vote", status_code=303)


# ------------------------------
# Voting wizard
# ------------------------------
def render_wizard(request: Request, controller: VotingWizardController, status_code: int = 200):
    if controller.state == WizardState.DONE:
        return RedirectResponse("/success", status_code=303)
    if controller.state in (WizardState.EXPIRED, WizardState.REJECTED):
        return sign_in_redirect(controller.error or SessionExpiredError.default_message)
    return render(
        request,
        "vote.html",
        status_code=status_code,
        wizard=controller,
        state=controller.state.value,
        position=controller.current_position,
        step=controller.cursor + 1 + len(controller.all_positions) - len(controller.positions),
        total=len(controller.all_positions),
        is_last=controller.cursor == len(controller.positions) - 1,
    )


def wizard_failure(request: Request, controller: VotingWizardController, error: VotingError):
    if isinstance(error, SessionExpiredError) or (isinstance(error, ConflictError) and error.fatal):
        return sign_in_redirect(error.message)
    controller.error = error.message
    status_code = error.status_code if error.status_code and error.status_code >= 400 else 400
    return render_wizard(request, controller, status_code)


def new_controller(storage: LocalStorage, backend: BackendClient, clock) -> VotingWizardController:
    return VotingWizardController(backend, StoredSession(storage), clock=clock)


@router.get("/vote")
async def vote_page(
    request: Request,
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
    clock: Callable[[], float] = Depends(get_clock),
):
    # a page load re-mounts, resuming past buffered votes, unless a request is still in flight
    live = registry.get(browser_id)
    if live is not None and live.busy:
        return render_wizard(request, live)
    controller = new_controller(storage, backend, clock)
    registry.put(browser_id, controller)
    try:
        await controller.mount()
    except VotingError as e:
        return wizard_failure(request, controller, e)
    return render_wizard(request, controller)


async def live_controller(storage, backend, registry, browser_id, clock) -> VotingWizardController:
    controller = registry.get(browser_id)
    if controller is None:
        controller = new_controller(storage, backend, clock)
        registry.put(browser_id, controller)
        await controller.mount()
    return controller


@router.post("/vote")
async def submit_vote(
    request: Request,
    position: str = Form(""),
    candidateId: str = Form(""),
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
    clock: Callable[[], float] = Depends(get_clock),
):
    controller = None
    try:
        controller = await live_controller(storage, backend, registry, browser_id, clock)
        await controller.submit_vote(position, candidateId)
    except VotingError as e:
        if controller is None:
            return sign_in_redirect(e.message) if isinstance(e, SessionExpiredError) else render(
                request, "message.html", status_code=400, title="Voting", message=e.message
            )
        return wizard_failure(request, controller, e)
    return render_wizard(request, controller)


@router.post("/vote/next")
async def next_position(
    request: Request,
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
    clock: Callable[[], float] = Depends(get_clock),
):
    controller = registry.get(browser_id)
    if controller is None:
        # nothing live (e.g. server restart): resuming lands on the next open position
        return RedirectResponse("/vote", status_code=303)
    try:
        await controller.advance()
    except VotingError as e:
        return wizard_failure(request, controller, e)
    return render_wizard(request, controller)


@router.post("/vote/finalize")
async def retry_finalize(
    request: Request,
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
):
    controller = registry.get(browser_id)
    if controller is None:
        return RedirectResponse("/vote", status_code=303)
    try:
        await controller.finalize()
    except VotingError as e:
        return wizard_failure(request, controller, e)
    return render_wizard(request, controller)


@router.get("/vote/state")
def wizard_state(
    storage: LocalStorage = Depends(get_local_storage),
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
    clock: Callable[[], float] = Depends(get_clock),
):
    """Polled by the vote page for the countdown."""
    controller = registry.get(browser_id)
    if controller is None:
        session = StoredSession(storage).load_session()
        if session is None or session.is_expired(clock()):
            return {"state": WizardState.EXPIRED.value, "currentPosition": None, "remainingSeconds": 0}
        return {
            "state": WizardState.LOADING.value,
            "currentPosition": None,
            "remainingSeconds": max(0, int(session.expires_at - clock())),
        }
    return {
        "state": controller.state.value,
        "currentPosition": controller.current_position,
        "remainingSeconds": controller.remaining_seconds,
        "votedPositions": list(controller.pending_votes),
    }


# ------------------------------
# After the ballot
# ------------------------------
@router.get("/success")
def success_page(request: Request):
    return render(request, "success.html")


@router.post("/logout")
def logout(
    storage: LocalStorage = Depends(get_local_storage),
    registry: WizardRegistry = Depends(get_registry),
    browser_id: str = Depends(get_browser_id),
):
    controller = registry.get(browser_id)
    if controller is not None:
        controller.logout()
    else:
        StoredSession(storage).clear_session()
    registry.discard(browser_id)
    return sign_in_redirect()

import json
import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse, Response

from nacos_vote import config
from nacos_vote.backend import BACKUP_PATHS, BackendClient
from nacos_vote.dependencies import get_backend, get_local_storage, render
from nacos_vote.errors import VotingError
from nacos_vote.security import verify_password
from nacos_vote.storage import LocalStorage
from nacos_vote.tallies import backup_filename, backup_status_line

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backup", tags=["Debug"])

UNLOCKED_KEY = "debugUnlocked"


def backup_page(request: Request, unlocked: bool, message: str = None, status_code: int = 200):
    return render(
        request,
        "backup.html",
        status_code=status_code,
        unlocked=unlocked,
        enabled=bool(config.DEBUG_PASSWORD_HASH),
        kinds=list(BACKUP_PATHS),
        message=message,
    )


@router.get("")
def backup_home(request: Request, storage: LocalStorage = Depends(get_local_storage)):
    return backup_page(request, bool(storage.get_item(UNLOCKED_KEY)))


@router.post("/unlock")
def unlock(request: Request, password: str = Form(""), storage: LocalStorage = Depends(get_local_storage)):
    if not config.DEBUG_PASSWORD_HASH:
        return backup_page(request, False, "❌ Backup page is disabled.", 403)
    if not verify_password(password, config.DEBUG_PASSWORD_HASH):
        logger.warning("Wrong password for backup page")
        return backup_page(request, False, "❌ Invalid password", 401)
    storage.set_item(UNLOCKED_KEY, True)
    return RedirectResponse("/backup", status_code=303)


@router.get("/download/{kind}")
async def download(
    request: Request,
    kind: str,
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
):
    if not storage.get_item(UNLOCKED_KEY):
        return RedirectResponse("/backup", status_code=303)
    if kind not in BACKUP_PATHS:
        return backup_page(request, True, f"❌ Unknown backup '{kind}'", 404)
    try:
        data = await backend.backup_download(kind)
    except VotingError as e:
        logger.error("Backup %s failed: %s", kind, e.message)
        return backup_page(request, True, f"❌ Backup failed: {e.message}", 502)
    return Response(
        content=json.dumps(data, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{backup_filename(kind)}"'},
    )


@router.get("/status")
async def status(
    request: Request,
    storage: LocalStorage = Depends(get_local_storage),
    backend: BackendClient = Depends(get_backend),
):
    if not storage.get_item(UNLOCKED_KEY):
        return RedirectResponse("/backup", status_code=303)
    try:
        backup_status = await backend.backup_status()
    except VotingError:
        return backup_page(request, True, "❌ Cannot connect to backup service", 502)
    return backup_page(request, True, backup_status_line(backup_status))

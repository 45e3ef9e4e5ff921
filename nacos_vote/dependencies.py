import time
from pathlib import Path
from typing import Callable

from fastapi import Depends, Request
from fastapi.templating import Jinja2Templates

from nacos_vote import config
from nacos_vote.backend import BackendClient
from nacos_vote.database.connection import get_store
from nacos_vote.firebase_auth import sign_in_with_email_and_password
from nacos_vote.storage import BrowserStore, LocalStorage
from nacos_vote.wizard import WizardRegistry

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def render(request: Request, name: str, status_code: int = 200, **context):
    context.setdefault("election_title", config.ELECTION_TITLE)
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_registry(request: Request) -> WizardRegistry:
    return request.app.state.registry


def get_browser_id(request: Request) -> str:
    # set by the browser identity middleware in main.py
    return request.state.browser_id


def get_local_storage(
    browser_id: str = Depends(get_browser_id), store: BrowserStore = Depends(get_store)
) -> LocalStorage:
    return LocalStorage(store, browser_id)


def get_clock() -> Callable[[], float]:
    return time.time


def get_identity_provider():
    return sign_in_with_email_and_password

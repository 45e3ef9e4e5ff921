# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, Response

from nacos_vote import config
from nacos_vote.backend import BackendClient
from nacos_vote.dependencies import render
from nacos_vote.errors import ConflictError, SessionExpiredError, VotingError
from nacos_vote.routes.admin_routes import router as admin_router
from nacos_vote.routes.debug_routes import router as debug_router
from nacos_vote.routes.proxy_routes import router as proxy_router
from nacos_vote.routes.results_routes import router as results_router
from nacos_vote.routes.voter_routes import router as voter_router, sign_in_redirect
from nacos_vote.security import create_browser_token, decode_browser_token, new_browser_id
from nacos_vote.wizard import WizardRegistry

# ==============================================================================
# SECTION 1: LOGGING
# ==============================================================================
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ==============================================================================
# SECTION 2: APPLICATION
# ==============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Voting front-end up, backend at %s", config.BACKEND_URL)
    yield
    await app.state.backend.aclose()


app = FastAPI(title=f"{config.ELECTION_TITLE} - Voting Front-end", lifespan=lifespan)
app.state.backend = BackendClient()
app.state.registry = WizardRegistry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def browser_identity(request: Request, call_next):
    """Gives every browser a stable id in a signed cookie; storage is keyed by it."""
    browser_id = decode_browser_token(request.cookies.get(config.BROWSER_COOKIE_NAME))
    issued = browser_id is None
    if issued:
        browser_id = new_browser_id()
    request.state.browser_id = browser_id

    response = await call_next(request)
    if issued:
        response.set_cookie(
            config.BROWSER_COOKIE_NAME,
            create_browser_token(browser_id),
            max_age=config.BROWSER_COOKIE_DAYS * 24 * 3600,
            httponly=True,
            samesite="lax",
        )
    return response


# ==============================================================================
# SECTION 3: ERROR HANDLING
# ==============================================================================
@app.exception_handler(VotingError)
async def voting_error_handler(request: Request, exc: VotingError):
    if isinstance(exc, SessionExpiredError) or (isinstance(exc, ConflictError) and exc.fatal):
        return sign_in_redirect(exc.message)
    status_code = exc.status_code if exc.status_code and exc.status_code >= 400 else 400
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return render(request, "message.html", status_code=status_code, title="Something went wrong", message=exc.message)


# ==============================================================================
# SECTION 4: ROUTES
# ==============================================================================
app.include_router(voter_router)
app.include_router(results_router)
app.include_router(admin_router)
app.include_router(debug_router)
app.include_router(proxy_router)


@app.get("/thank-you", include_in_schema=False)
def thank_you():
    return RedirectResponse("/success", status_code=303)


@app.get("/health", tags=["Root"])
async def health_check():
    return {"status": "healthy", "backend": config.BACKEND_URL, "storage": config.STORAGE_BACKEND}


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)

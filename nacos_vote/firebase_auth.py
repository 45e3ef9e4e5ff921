# nacos_vote/firebase_auth.py
# Admin sign-in against Firebase Authentication's REST endpoint
import logging

import httpx

from nacos_vote import config
from nacos_vote.errors import NetworkError, ValidationError

logger = logging.getLogger(__name__)


async def sign_in_with_email_and_password(email: str, password: str, transport: httpx.AsyncBaseTransport = None) -> str:
    """Returns a Firebase ID token for the admin account."""
    if not config.FIREBASE_API_KEY:
        raise ValidationError("Admin login is not configured.")

    payload = {"email": email, "password": password, "returnSecureToken": True}
    try:
        async with httpx.AsyncClient(timeout=config.BACKEND_TIMEOUT, transport=transport) as client:
            response = await client.post(
                config.FIREBASE_SIGN_IN_URL, params={"key": config.FIREBASE_API_KEY}, json=payload
            )
    except httpx.RequestError as e:
        logger.warning("Firebase sign-in request failed: %s", e)
        raise NetworkError()

    try:
        data = response.json()
    except ValueError:
        raise NetworkError("Unexpected response from the identity provider.")

    if response.status_code != 200:
        # e.g. {"error": {"message": "INVALID_LOGIN_CREDENTIALS"}}
        reason = (data.get("error") or {}).get("message", "UNKNOWN")
        logger.info("Firebase rejected admin sign-in for %s: %s", email, reason)
        raise ValidationError(f"Login failed: {reason}")

    id_token = data.get("idToken")
    if not id_token:
        raise NetworkError("Unexpected response from the identity provider.")
    return id_token

"""Google sign-in, one-time token exchange and session endpoints."""

import logging
import uuid

import requests
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from ...config import Config
from ...models import UserInfo
from ...storage.database import DatabaseClient
from ..deps import get_config, get_current_user, get_db
from .. import google_oauth

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

HANDOFF_TTL_SECONDS = 5 * 60


@router.get("/auth/google")
def start_google_auth(config: Config = Depends(get_config)):
    """Redirect the browser to Google's consent screen."""
    url = google_oauth.build_authorization_url(
        config.google_oauth2_client_id,
        config.google_oauth2_redirect_uri,
    )
    return RedirectResponse(url)


@router.get("/auth/google/callback")
def google_auth_callback(
    code: str | None = None,
    config: Config = Depends(get_config),
    db: DatabaseClient = Depends(get_db),
):
    """
    Finish the OAuth flow.

    The profile and tokens are parked under a one-time token that expires after
    five minutes; the frontend trades it for a session via /api/exchange-token.
    """
    if not code:
        raise HTTPException(status_code=400, detail="Authorization code missing.")

    try:
        tokens = google_oauth.exchange_code(
            code,
            client_id=config.google_oauth2_client_id,
            client_secret=config.google_oauth2_client_secret,
            redirect_uri=config.google_oauth2_redirect_uri,
        )
        user = google_oauth.fetch_user_info(tokens["access_token"])
    except (requests.RequestException, KeyError) as e:
        logger.error(f"Google authentication failed: {e}")
        raise HTTPException(status_code=500, detail="Error processing Google authentication.")

    handoff_token = str(uuid.uuid4())
    db.purge_expired_handoffs()
    db.put_auth_handoff(
        handoff_token,
        {"user": user.model_dump(), "google_tokens": tokens},
        ttl_seconds=HANDOFF_TTL_SECONDS,
    )
    logger.info(f"User {user.id} authenticated, redirecting to frontend")
    return RedirectResponse(f"{config.frontend_url}/auth-success?token={handoff_token}")


@router.get("/api/exchange-token")
def exchange_token(request: Request, token: str | None = None, db: DatabaseClient = Depends(get_db)):
    """Trade a one-time login token for a session."""
    payload = db.pop_auth_handoff(token) if token else None
    if payload is None:
        logger.warning("Token exchange failed: unknown or expired token")
        return JSONResponse(
            status_code=401,
            content={"success": False, "message": "Invalid or expired auth token."},
        )

    # Tokens stay server-side; the cookie only carries an opaque session id
    session_id = str(uuid.uuid4())
    db.save_google_tokens(session_id, payload["user"]["id"], payload["google_tokens"])
    request.session["user"] = payload["user"]
    request.session["session_id"] = session_id
    return {"success": True, "message": "Authentication successful.", "user": payload["user"]}


@router.get("/api/me")
def me(user: UserInfo = Depends(get_current_user)):
    return {"user": user}


@router.post("/api/logout")
def logout(request: Request, db: DatabaseClient = Depends(get_db)):
    session_id = request.session.get("session_id")
    if session_id:
        db.delete_session(session_id)
    request.session.clear()
    return {"message": "Logged out successfully"}

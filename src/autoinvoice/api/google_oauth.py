"""Google OAuth2 web-server flow helpers (authorization URL, code exchange, profile)."""

import logging
from urllib.parse import urlencode

import requests

from ..models import UserInfo

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


def build_authorization_url(client_id: str, redirect_uri: str) -> str:
    """Consent URL requesting offline access so a refresh token is issued."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str, client_id: str, client_secret: str, redirect_uri: str) -> dict:
    """Exchange an authorization code for tokens.

    Returns:
        dict: Token response (access_token, refresh_token, expires_in, scope, ...)

    Raises:
        requests.HTTPError: If Google rejects the code
    """
    data = {
        "code": code,
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }

    response = requests.post(TOKEN_URL, data=data, timeout=30)
    response.raise_for_status()
    return response.json()


def fetch_user_info(access_token: str) -> UserInfo:
    """Fetch the Google profile of the token's owner."""
    response = requests.get(
        USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=30,
    )
    response.raise_for_status()
    profile = response.json()
    return UserInfo(
        id=str(profile["id"]),
        email=profile.get("email"),
        name=profile.get("name"),
        picture=profile.get("picture"),
    )

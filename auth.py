"""
Google sign-in and the per-request session context.

Sign-in uses the OAuth authorization-code flow. After Google returns the
user, the email-domain policy is applied, the profile is upserted, and the
service issues its own signed access token. Handlers receive a
``SessionContext`` through ``current_session``; nothing about the signed-in
user is kept in module state.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import requests
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

import queries
from config import settings
from errors import AuthenticationError, PermissionDeniedError
from logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

JWT_ALG = "HS256"
STATE_TTL_MIN = 10
STATE_COOKIE = "oauth_state_nonce"

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
OAUTH_TIMEOUT_SECONDS = 10

security = HTTPBearer(auto_error=False)


@dataclass
class OAuthUser:
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class SessionContext(BaseModel):
    user_id: str
    email: str
    name: Optional[str] = None
    access_token: str


# ---------- Tokens ----------

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_ttl_min))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALG])
    except JWTError:
        raise AuthenticationError("Invalid or expired token") from None


def new_state_nonce() -> str:
    return secrets.token_urlsafe(16)


def create_oauth_state(nonce: str) -> str:
    """Signed state for the authorization request, bound to the browser's ``nonce`` cookie."""
    return create_access_token(
        {"purpose": "oauth_state", "nonce": nonce},
        timedelta(minutes=STATE_TTL_MIN),
    )


def verify_oauth_state(state: Optional[str], nonce: Optional[str]) -> None:
    if not state:
        raise AuthenticationError("Missing OAuth state")
    payload = decode_token(state)
    if payload.get("purpose") != "oauth_state":
        raise AuthenticationError("Invalid OAuth state")
    if not nonce or not secrets.compare_digest(str(payload.get("nonce", "")).encode(), nonce.encode()):
        raise AuthenticationError("OAuth state does not belong to this browser")


# ---------- Google OAuth ----------

def authorization_url(state: str) -> str:
    params = {
        "client_id": settings.google_client_id or "",
        "redirect_uri": settings.oauth_redirect_url,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str) -> OAuthUser:
    """Trade an authorization code for the Google user it belongs to."""
    try:
        token_resp = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "redirect_uri": settings.oauth_redirect_url,
                "grant_type": "authorization_code",
            },
            timeout=OAUTH_TIMEOUT_SECONDS,
        )
        token_resp.raise_for_status()
        access_token = token_resp.json()["access_token"]
        info_resp = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=OAUTH_TIMEOUT_SECONDS,
        )
        info_resp.raise_for_status()
        info = info_resp.json()
    except (requests.RequestException, KeyError, ValueError) as exc:
        log_event(LOGGER, logging.WARNING, "auth.exchange_failed", error=str(exc))
        raise AuthenticationError("An error occurred during sign in.", code="OAuthCallback") from exc

    if not info.get("sub") or not info.get("email"):
        raise AuthenticationError("An error occurred during sign in.", code="OAuthCallback")
    return OAuthUser(
        id=info["sub"],
        email=info["email"],
        full_name=info.get("name"),
        avatar_url=info.get("picture"),
    )


# ---------- Policy ----------

def auth_error_message(code: Optional[str]) -> str:
    if code == "AccessDenied" and settings.allowed_email_domain:
        return f"Only @{settings.allowed_email_domain} email addresses are allowed to sign in."
    return "An error occurred during sign in."


def check_email_domain(email: str) -> None:
    domain = settings.allowed_email_domain
    if domain and not email.lower().endswith(f"@{domain.lower()}"):
        raise PermissionDeniedError(auth_error_message("AccessDenied"), code="AccessDenied")


def sign_in(user: OAuthUser) -> dict:
    """Apply the domain policy, sync the profile and issue an access token."""
    try:
        check_email_domain(user.email)
    except PermissionDeniedError:
        log_event(LOGGER, logging.WARNING, "auth.domain_rejected", email=user.email)
        raise

    existing = queries.find_profile(user.id)
    profile = queries.upsert_profile(
        user.id,
        {"email": user.email},
        defaults={"full_name": user.full_name or user.email, "avatar_url": user.avatar_url, "phone": None},
    )
    token = create_access_token({"sub": user.id, "email": user.email, "name": profile.get("full_name")})
    log_event(LOGGER, logging.INFO, "auth.signed_in", user_id=user.id, new_profile=existing is None)
    return {
        "token": token,
        "user": profile,
        "profile_complete": bool(profile.get("phone")),
    }


# ---------- Dependencies ----------

def _session_from_token(token: str) -> SessionContext:
    payload = decode_token(token)
    if payload.get("purpose") == "oauth_state" or not payload.get("sub"):
        raise AuthenticationError("Invalid token payload")
    return SessionContext(
        user_id=payload["sub"],
        email=payload.get("email", ""),
        name=payload.get("name"),
        access_token=token,
    )


def current_session(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> SessionContext:
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return _session_from_token(credentials.credentials)


def optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[SessionContext]:
    if credentials is None:
        return None
    return _session_from_token(credentials.credentials)

"""
api/routes/v1/auth.py -- Sign-in, sign-out and session REST endpoints.

Routes:
  POST /api/v1/auth/login                      -- email/password login; sets JWT cookie
  POST /api/v1/auth/logout                     -- clears cookie; 200
  GET  /api/v1/auth/session                    -- session view from the token (requires auth)
  GET  /api/v1/auth/providers                  -- list configured OAuth providers (public)
  GET  /api/v1/auth/oauth/{provider}/login     -- redirect to the provider
  GET  /api/v1/auth/oauth/{provider}/callback  -- resolve identity, set cookie, redirect

Security:
  [H2] POST /login is rate-limited per IP, in front of the per-account lockout.
  [C1] Authenticator.authenticate() equalizes timing -- never inline the store lookup.
  [M5] Cache-Control: no-store on login responses.

Failures raised by the authenticator (auth.errors.AuthError) are turned into
the error envelope by the handler in api/main.py.
"""

from __future__ import annotations

import logging

import httpx
from authlib.integrations.base_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import limiter
from api.models import LoginRequest, OAuthProviderInfo, SessionResponse
from auth.authenticator import Authenticator
from auth.dependencies import get_current_session
from auth.errors import AuthError
from auth.models import CredentialsAttempt, FederatedAttempt
from auth.oauth import fetch_provider_profile, get_enabled_providers
from auth.session import issue_claims, to_session_view
from auth.tokens import create_session_token, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("sessionguard.api.auth")

# Auth policy:
# - POST /api/v1/auth/login:                     public
# - POST /api/v1/auth/logout:                    public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/providers:                 public -- sign-in page renders provider buttons
# - GET  /api/v1/auth/oauth/{provider}/*:        public -- the provider authenticates
# - GET  /api/v1/auth/session:                   requires auth (get_current_session)
router = APIRouter()


# ---------------------------------------------------------------------------
# Credentials path
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=SessionResponse)
@limiter.limit(get_settings().login_rate_limit)  # [H2] below @router so the limited wrapper is registered
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Unknown email, password-less account and wrong password all produce the
    same invalid_credentials error.
    """
    authenticator: Authenticator = request.app.state.authenticator
    identity = authenticator.sign_in(CredentialsAttempt(email=body.email, password=body.password))

    claims = issue_claims(identity)
    resp = JSONResponse(status_code=200, content={"user": to_session_view(claims)})
    set_auth_cookie(resp, create_session_token(claims))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the session cookie."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.get("/auth/session", response_model=SessionResponse, response_model_exclude_none=True)
async def session(current: dict = Depends(get_current_session)) -> SessionResponse:
    """Return the session view carried by the caller's token."""
    return SessionResponse(user=current)


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty list if none are set up."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(get_settings())]


# ---------------------------------------------------------------------------
# Federated path
# ---------------------------------------------------------------------------


def _oauth_client(request: Request, provider: str):
    client = request.app.state.oauth.create_client(provider)
    if client is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "unknown_provider", "message": f"OAuth provider {provider!r} is not configured."},
        )
    return client


@router.get("/auth/oauth/{provider}/login")
async def oauth_login(request: Request, provider: str):
    """Redirect the browser to the provider's authorization page."""
    client = _oauth_client(request, provider)
    redirect_uri = request.url_for("oauth_callback", provider=provider)
    return await client.authorize_redirect(request, str(redirect_uri))


@router.get("/auth/oauth/{provider}/callback", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish the provider flow, resolve the local identity and start a session.

    Any failure (provider error, unreadable profile, no usable email, store
    outage) sends the browser back to the sign-in page with error=oauth_failed.
    """
    settings = get_settings()
    client = _oauth_client(request, provider)
    failed = RedirectResponse(f"{settings.sign_in_path}?error=oauth_failed", status_code=302)

    try:
        token = await client.authorize_access_token(request)
        profile = await fetch_provider_profile(client, provider, token)
    except (OAuthError, httpx.HTTPError, ValueError) as exc:
        logger.warning("%s OAuth callback failed: %s", provider, exc)
        return failed

    authenticator: Authenticator = request.app.state.authenticator
    try:
        identity = authenticator.sign_in(FederatedAttempt(provider=provider, profile=profile))
    except AuthError as exc:
        logger.warning("%s sign-in could not be completed: %s", provider, exc.code)
        return failed

    resp = RedirectResponse(settings.post_login_path, status_code=302)
    set_auth_cookie(resp, create_session_token(issue_claims(identity)))
    return resp

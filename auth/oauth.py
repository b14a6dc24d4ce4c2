"""
auth/oauth.py -- Authlib OAuth provider registry and profile normalization.

build_oauth() registers only the providers whose client ID and secret are both
configured. It is called once from the FastAPI lifespan; nothing is registered
at import time.

fetch_provider_profile() turns a provider's token response into a
FederatedProfile. Deriving the identity email from that profile is the
resolver's job (auth/federation.py), not this module's.

Supported providers:
  github -- Authorization code flow; static endpoints.
  google -- Authorization code flow; OIDC discovery.

OAuth state (CSRF protection) is handled by authlib via Starlette
SessionMiddleware.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import FederatedProfile
from core.config import Settings

logger = logging.getLogger("sessionguard.auth.oauth")


def build_oauth(settings: Settings) -> OAuth:
    """Return an authlib registry with every configured provider registered."""
    oauth = OAuth()

    if settings.google_enabled:
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")

    if settings.github_enabled:
        oauth.register(
            name="github",
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
            authorize_url="https://github.com/login/oauth/authorize",
            api_base_url="https://api.github.com/",
            client_kwargs={"scope": "read:user user:email"},
        )
        logger.info("GitHub OAuth provider registered")
    else:
        logger.warning("GitHub OAuth is not configured: GITHUB_CLIENT_ID or GITHUB_CLIENT_SECRET is missing")

    return oauth


def get_enabled_providers(settings: Settings) -> list[dict]:
    """Return [{"name": str, "label": str}] for every configured provider."""
    providers: list[dict] = []
    if settings.google_enabled:
        providers.append({"name": "google", "label": "Google"})
    if settings.github_enabled:
        providers.append({"name": "github", "label": "GitHub"})
    return providers


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


async def fetch_provider_profile(client, provider: str, token: dict) -> FederatedProfile:
    """Normalize a provider token response into a FederatedProfile.

    Raises ValueError for providers this module does not know.
    """
    if provider == "github":
        return await _fetch_github_profile(client, token)
    elif provider == "google":
        return _google_profile(token)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _fetch_github_profile(client, token: dict) -> FederatedProfile:
    """Build a profile from GET /user, falling back to GET /user/emails.

    GitHub leaves "email" null when the user keeps it private. In that case the
    primary verified entry from /user/emails is used. If there is none, email
    stays None and the resolver synthesizes the no-reply address from login.
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    data = resp.json()

    email = data.get("email")
    if not email:
        emails_resp = await client.get("user/emails", token=token)
        if emails_resp.status_code == 200:
            for entry in emails_resp.json():
                if entry.get("primary") and entry.get("verified"):
                    email = entry.get("email")
                    break

    return FederatedProfile(
        email=email,
        name=data.get("name"),
        image=data.get("avatar_url"),
        handle=data.get("login"),
    )


def _google_profile(token: dict) -> FederatedProfile:
    userinfo = token.get("userinfo") or {}
    return FederatedProfile(
        email=userinfo.get("email"),
        name=userinfo.get("name"),
        image=userinfo.get("picture"),
        handle=userinfo.get("sub"),
    )

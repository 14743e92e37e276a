"""Profile fetchers and best-effort profile enrichers.

A fetcher performs the primary, bearer-authenticated profile request and
returns the raw JSON object. An enricher runs afterwards to fill gaps the
primary response leaves (for example a hidden email address). Enrichers
are best-effort: ProviderClient keeps the unenriched profile when one
fails, so they should raise ProfileFetchError or httpx.HTTPError and let
the client decide.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from nica_auth.errors import ProfileFetchError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProfileRequest:
    """Everything a fetcher needs to call the provider's profile API."""

    http: httpx.AsyncClient
    provider: str
    profile_url: str
    client_id: str
    access_token: str = field(repr=False)


ProfileFetcher = Callable[[ProfileRequest], Awaitable[Any]]
ProfileEnricher = Callable[[ProfileRequest, dict[str, Any]], Awaitable[dict[str, Any]]]


async def request_json(
    request: ProfileRequest,
    url: str,
    *,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, str] | None = None,
) -> Any:
    """Make a bearer-authenticated request and decode the JSON body.

    Raises:
        ProfileFetchError: On a non-2xx response or an undecodable body.
    """
    request_headers = {
        "Authorization": f"Bearer {request.access_token}",
        "Accept": "application/json",
    }
    if headers:
        request_headers.update(headers)

    response = await request.http.request(method, url, headers=request_headers, params=params)

    if not response.is_success:
        logger.warning(
            "Profile request failed",
            provider=request.provider,
            url=url,
            status=response.status_code,
        )
        raise ProfileFetchError(
            f"Failed to fetch {request.provider} profile",
            provider=request.provider,
            status_code=response.status_code,
            status_text=response.reason_phrase,
        )

    try:
        return response.json()
    except ValueError as e:
        raise ProfileFetchError(
            f"Invalid JSON in {request.provider} profile response",
            provider=request.provider,
            status_code=response.status_code,
            status_text="invalid JSON",
        ) from e


async def fetch_bearer_profile(request: ProfileRequest) -> Any:
    """Default fetcher: GET the profile URL with a bearer token."""
    return await request_json(request, request.profile_url)


async def fetch_github_profile(request: ProfileRequest) -> Any:
    return await request_json(
        request,
        request.profile_url,
        headers={"Accept": "application/vnd.github+json"},
    )


async def fetch_facebook_profile(request: ProfileRequest) -> Any:
    # The Graph API returns only id and name unless fields are requested.
    return await request_json(
        request,
        request.profile_url,
        params={"fields": "id,name,email,picture"},
    )


async def fetch_dropbox_profile(request: ProfileRequest) -> Any:
    return await request_json(request, request.profile_url, method="POST")


async def fetch_twitch_profile(request: ProfileRequest) -> Any:
    body = await request_json(
        request,
        request.profile_url,
        headers={"Client-Id": request.client_id},
    )
    users = body.get("data") if isinstance(body, dict) else None
    if not users:
        raise ProfileFetchError(
            "Twitch returned no user",
            provider=request.provider,
            status_code=200,
            status_text="empty data",
        )
    return users[0]


async def fetch_twitter_profile(request: ProfileRequest) -> Any:
    body = await request_json(
        request,
        request.profile_url,
        params={"user.fields": "profile_image_url"},
    )
    return body.get("data") if isinstance(body, dict) else body


async def fetch_slack_profile(request: ProfileRequest) -> Any:
    body = await request_json(request, request.profile_url)
    # Slack reports failures as HTTP 200 with ok=false.
    if isinstance(body, dict) and body.get("ok") is False:
        raise ProfileFetchError(
            "Slack rejected the identity request",
            provider=request.provider,
            status_code=200,
            status_text=str(body.get("error", "unknown_error")),
        )
    return body


GITHUB_EMAILS_URL = "https://api.github.com/user/emails"
BITBUCKET_EMAILS_URL = "https://api.bitbucket.org/2.0/user/emails"


async def enrich_github_email(request: ProfileRequest, raw: dict[str, Any]) -> dict[str, Any]:
    """Fill a hidden GitHub email from the primary verified address."""
    if raw.get("email"):
        return raw

    emails = await request_json(
        request,
        GITHUB_EMAILS_URL,
        headers={"Accept": "application/vnd.github+json"},
    )
    for entry in emails if isinstance(emails, list) else []:
        if isinstance(entry, dict) and entry.get("primary") and entry.get("verified"):
            return {**raw, "email": entry.get("email")}

    logger.warning("No verified primary email found", provider=request.provider)
    return raw


async def enrich_bitbucket_email(request: ProfileRequest, raw: dict[str, Any]) -> dict[str, Any]:
    """Bitbucket never includes the email in /user."""
    if raw.get("email"):
        return raw

    body = await request_json(request, BITBUCKET_EMAILS_URL)
    values = body.get("values") if isinstance(body, dict) else None
    for entry in values if isinstance(values, list) else []:
        if isinstance(entry, dict) and entry.get("is_primary") and entry.get("is_confirmed"):
            return {**raw, "email": entry.get("email")}

    return raw

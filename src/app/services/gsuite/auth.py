"""Google API service factory for per-user OAuth access tokens.

The caller's access token is obtained by the sign-in collaborator and
arrives with each request. This module wraps it in user credentials and
caches built service instances per (api, token) so repeated calls within a
session do not rebuild discovery documents. The cache is a small LRU; tokens
rotate, so stale entries age out instead of accumulating.
"""

from __future__ import annotations

import hashlib
from collections import OrderedDict
from typing import Any

import structlog
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

logger = structlog.get_logger(__name__)

# Scopes the sign-in collaborator must have granted
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
]

CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
]

TASKS_SCOPES = [
    "https://www.googleapis.com/auth/tasks",
]


# Built resources kept across requests; least recently used evicted first
MAX_CACHED_SERVICES = 64


def _token_fingerprint(access_token: str) -> str:
    return hashlib.sha256(access_token.encode("utf-8")).hexdigest()[:16]


class GoogleServiceFactory:
    """Builds and caches Google API resources for user access tokens."""

    def __init__(self, max_cached: int = MAX_CACHED_SERVICES) -> None:
        self._service_cache: OrderedDict[str, Any] = OrderedDict()
        self._max_cached = max_cached

    def _build_credentials(self, access_token: str, scopes: list[str]) -> Credentials:
        """Wrap a bearer token in google-auth user credentials.

        No refresh token is held here. An expired token surfaces as an HTTP
        401 from the API and is reported to the caller.
        """
        return Credentials(token=access_token, scopes=scopes)

    def _get_service(
        self,
        api: str,
        version: str,
        access_token: str,
        scopes: list[str],
    ) -> Any:
        cache_key = f"{api}:{_token_fingerprint(access_token)}"

        if cache_key in self._service_cache:
            self._service_cache.move_to_end(cache_key)
            return self._service_cache[cache_key]

        logger.info("building_google_service", api=api, version=version)
        credentials = self._build_credentials(access_token, scopes)
        service = build(
            api,
            version,
            credentials=credentials,
            cache_discovery=False,
        )
        self._service_cache[cache_key] = service
        while len(self._service_cache) > self._max_cached:
            evicted_key, _ = self._service_cache.popitem(last=False)
            logger.debug("google_service_evicted", api=evicted_key.split(":", 1)[0])

        return service

    def get_gmail_service(self, access_token: str) -> Any:
        """Get a cached Gmail API v1 resource for the token."""
        return self._get_service("gmail", "v1", access_token, GMAIL_SCOPES)

    def get_calendar_service(self, access_token: str) -> Any:
        """Get a cached Calendar API v3 resource for the token."""
        return self._get_service("calendar", "v3", access_token, CALENDAR_SCOPES)

    def get_tasks_service(self, access_token: str) -> Any:
        """Get a cached Tasks API v1 resource for the token."""
        return self._get_service("tasks", "v1", access_token, TASKS_SCOPES)

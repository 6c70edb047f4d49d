"""HTTP client for the Semble API.

Implements the card-listing, search and reverse-lookup providers used
by the recommendation and overlap code. Every failure surfaces as
``SembleAPIError``; callers decide whether it is fatal.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from semble_recs.errors import SembleAPIError
from semble_recs.models import (
    Card,
    Collection,
    CollectionDetail,
    CollectionsResponse,
    LibrariesResponse,
    LibraryEntry,
    UrlListResponse,
    UrlView,
    UserCardsResponse,
)
from semble_recs.overlap import LibraryProvider
from semble_recs.recommendations import CardProvider, SearchProvider

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.semble.so"
DEFAULT_TIMEOUT = 30
DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_PAGES = 100

M = TypeVar("M", bound=BaseModel)


def _query_string(params: dict[str, Any]) -> str:
    """Encode params, dropping unset values."""
    return urllib.parse.urlencode({k: v for k, v in params.items() if v is not None and v != ""})


class SembleAPI(CardProvider, SearchProvider, LibraryProvider):
    """Thin JSON client for the public Semble endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.max_pages = max_pages

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        query = _query_string(params)
        url = f"{self.base_url}{path}" + (f"?{query}" if query else "")
        logger.debug("GET %s", url)

        req = urllib.request.Request(url, headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            raise SembleAPIError(
                f"Semble API returned {exc.code} for {path}", url=url, status=exc.code
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise SembleAPIError(f"Could not reach Semble API: {exc}", url=url) from exc

        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            raise SembleAPIError(f"Invalid JSON from {path}", url=url) from exc
        if not isinstance(data, dict):
            raise SembleAPIError(f"Unexpected response shape from {path}", url=url)
        return data

    def _fetch(self, path: str, params: dict[str, Any], model: type[M]) -> M:
        data = self._get(path, params)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise SembleAPIError(f"Malformed response from {path}: {exc}") from exc

    # ── card listing ─────────────────────────────────────────────────

    def get_user_cards(
        self, identifier: str, *, page: int = 1, limit: int | None = None
    ) -> UserCardsResponse:
        """Fetch a single page of a user's cards."""
        path = f"/api/cards/user/{urllib.parse.quote(identifier, safe='')}"
        return self._fetch(
            path, {"page": page, "limit": limit or self.page_size}, UserCardsResponse
        )

    def fetch_user_cards(self, identifier: str) -> list[Card]:
        """Fetch every page of a user's cards."""
        cards: list[Card] = []
        page = 1
        while page <= self.max_pages:
            response = self.get_user_cards(identifier, page=page)
            cards.extend(response.cards)
            logger.debug("Fetched page %d (%d cards so far)", page, len(cards))
            if not response.pagination.has_more:
                break
            page += 1
        else:
            logger.warning(
                "Stopped paging %s after %d pages; library may be incomplete",
                identifier,
                self.max_pages,
            )
        logger.info("Fetched %d cards for %s", len(cards), identifier)
        return cards

    # ── search ───────────────────────────────────────────────────────

    def semantic_search(self, query: str, *, limit: int, threshold: float) -> list[UrlView]:
        return self._fetch(
            "/api/search/semantic",
            {"query": query, "threshold": threshold, "limit": limit},
            UrlListResponse,
        ).urls

    def get_similar_urls(self, url: str, *, limit: int, threshold: float) -> list[UrlView]:
        return self._fetch(
            "/api/search/similar-urls",
            {"url": url, "threshold": threshold, "limit": limit},
            UrlListResponse,
        ).urls

    # ── library overlap ──────────────────────────────────────────────

    def libraries_for_url(self, url: str) -> list[LibraryEntry]:
        return self._fetch("/api/cards/libraries/url", {"url": url}, LibrariesResponse).libraries

    def collections_for_url(self, url: str) -> list[Collection]:
        return self._fetch("/api/collections/url", {"url": url}, CollectionsResponse).collections

    def get_collection(self, handle: str, record_key: str) -> CollectionDetail:
        """Fetch a collection and its URL cards by author handle and record key."""
        path = "/api/collections/at/{}/{}".format(
            urllib.parse.quote(handle, safe=""), urllib.parse.quote(record_key, safe="")
        )
        return self._fetch(path, {}, CollectionDetail)

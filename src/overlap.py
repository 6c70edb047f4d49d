"""Library overlap: who else saved the same URLs.

For every card in a library (or collection), ask the service which users
and which collections also hold that URL, then rank them by how many
shared records they have. Lookups run concurrently; counting happens on
the calling thread in card order, so rankings are reproducible.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from semble_recs.models import (
    AuthorOverlap,
    Card,
    Collection,
    CollectionOverlap,
    LibraryEntry,
    MutualUser,
    OverlapReport,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 5
DEFAULT_TOP_USERS = 20
DEFAULT_TOP_COLLECTIONS = 10

T = TypeVar("T")


class LibraryProvider(ABC):
    """Reverse lookups from a URL to the libraries and collections holding it."""

    @abstractmethod
    def libraries_for_url(self, url: str) -> list[LibraryEntry]:
        """Return one entry per user who saved ``url``."""

    @abstractmethod
    def collections_for_url(self, url: str) -> list[Collection]:
        """Return every collection containing ``url``."""


def collection_uri(handle: str, record_key: str) -> str:
    return f"at://{handle}/{record_key}"


def _lookup_all(
    cards: Sequence[Card],
    lookup: Callable[[str], list[T]],
    max_workers: int,
    log: logging.Logger,
) -> list[list[T]]:
    """Call ``lookup`` for each card URL; a failed call yields an empty list."""
    if not cards:
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(cards)))) as executor:
        futures = [(card.url, executor.submit(lookup, card.url)) for card in cards]

        results: list[list[T]] = []
        for url, future in futures:
            try:
                results.append(future.result())
            except Exception:
                log.warning("Lookup failed for %s", url, exc_info=True)
                results.append([])
    return results


def find_mutual_users(
    cards: Sequence[Card],
    provider: LibraryProvider,
    exclude_handle: str,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    log: logging.Logger | None = None,
) -> list[MutualUser]:
    """Rank other users by how many of ``cards`` they have also saved.

    Args:
        cards: The target user's library.
        provider: Reverse URL lookup.
        exclude_handle: The target user, left out of the ranking.
        max_workers: Upper bound on concurrent lookups.
        log: Optional logger for tracing.

    Returns:
        Users sorted by shared-card count, descending; ties keep the order
        in which users were first seen.
    """
    log = log or logger
    log.info("Checking %d URLs for mutual savers", len(cards))

    users: dict[str, MutualUser] = {}
    for entries in _lookup_all(cards, provider.libraries_for_url, max_workers, log):
        for entry in entries:
            if entry.user.handle == exclude_handle:
                continue
            key = entry.user.id or entry.user.handle
            existing = users.get(key)
            if existing is not None:
                existing.count += 1
                existing.mutual_cards.append(entry.card)
            else:
                users[key] = MutualUser(
                    id=entry.user.id,
                    handle=entry.user.handle,
                    count=1,
                    mutual_cards=[entry.card],
                )

    log.info("Found %d users with at least one mutual card", len(users))
    return sorted(users.values(), key=lambda u: u.count, reverse=True)


def find_overlapping_collections(
    cards: Sequence[Card],
    provider: LibraryProvider,
    source_uri: str,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    log: logging.Logger | None = None,
) -> OverlapReport:
    """Rank collections, and their authors, by how many of ``cards`` they contain.

    The collection at ``source_uri`` is never counted. Authors are counted
    once per containing collection, so an author with two overlapping
    collections scores for both.
    """
    log = log or logger
    log.info("Checking %d URLs for overlapping collections", len(cards))

    collections: dict[str, CollectionOverlap] = {}
    authors: dict[str, AuthorOverlap] = {}
    for found in _lookup_all(cards, provider.collections_for_url, max_workers, log):
        for col in found:
            if col.uri == source_uri:
                continue

            existing = collections.get(col.uri)
            if existing is not None:
                existing.count += 1
            else:
                collections[col.uri] = CollectionOverlap(
                    uri=col.uri, name=col.name, author=col.author.handle, count=1
                )

            author = authors.get(col.author.handle)
            if author is not None:
                author.count += 1
            else:
                authors[col.author.handle] = AuthorOverlap(handle=col.author.handle, count=1)

    return OverlapReport(
        collections=sorted(collections.values(), key=lambda c: c.count, reverse=True),
        authors=sorted(authors.values(), key=lambda a: a.count, reverse=True),
    )

"""Cluster-driven recommendations.

Each cluster's top keywords become a search query against an external
search provider. Results from all clusters are merged into one list keyed
by URL, scored by how many clusters surfaced them, and filtered against
the user's own library both by exact URL and by content signature.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from semble_recs.models import Card, Recommendation, TopicCluster, UrlView
from semble_recs.text import card_signature, content_signature

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLUSTERS = 5
DEFAULT_RESULTS_PER_CLUSTER = 10
DEFAULT_SEARCH_THRESHOLD = 0.4
DEFAULT_SIMILAR_LIMIT = 10
DEFAULT_SIMILAR_THRESHOLD = 0.5
DEFAULT_CARDS_PER_CLUSTER = 3
DEFAULT_MAX_WORKERS = 5
QUERY_KEYWORDS = 3


class CardProvider(ABC):
    """Source of a user's complete card library."""

    @abstractmethod
    def fetch_user_cards(self, identifier: str) -> list[Card]:
        """Return every card saved by ``identifier``, pagination already resolved."""


class SearchProvider(ABC):
    """External similarity search over the shared URL index."""

    @abstractmethod
    def semantic_search(self, query: str, *, limit: int, threshold: float) -> list[UrlView]:
        """Return URLs semantically related to a free-text query."""

    @abstractmethod
    def get_similar_urls(self, url: str, *, limit: int, threshold: float) -> list[UrlView]:
        """Return URLs similar to ``url``."""


class _Library:
    """Dedup keys for the cards a user already has."""

    def __init__(self, cards: Sequence[Card]) -> None:
        self.urls = {card.url for card in cards}
        self.signatures = {card_signature(card) for card in cards}

    def contains(self, item: UrlView) -> bool:
        if item.url in self.urls:
            return True
        meta = item.metadata
        signature = content_signature(meta.title, meta.description, meta.author, meta.site_name)
        return signature in self.signatures


# (cluster position, cluster name, search call)
SearchJob = tuple[int, str, Callable[[], list[UrlView]]]


def _run_searches(
    jobs: Sequence[SearchJob],
    max_workers: int,
    log: logging.Logger,
) -> list[tuple[int, str, list[UrlView]]]:
    """Run search calls concurrently and return results in job order.

    A failing call contributes an empty list; the others are unaffected.
    """
    if not jobs:
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs)))) as executor:
        futures = [(pos, name, executor.submit(call)) for pos, name, call in jobs]

        results: list[tuple[int, str, list[UrlView]]] = []
        for pos, name, future in futures:
            try:
                urls = future.result()
            except Exception:
                log.warning("Search failed for cluster %r", name, exc_info=True)
                urls = []
            results.append((pos, name, urls))
    return results


def _merge_results(
    results: Sequence[tuple[int, str, list[UrlView]]],
    library: _Library,
    log: logging.Logger,
) -> list[Recommendation]:
    """Score and dedup search results; items already in the library never enter.

    A URL scores once per cluster, however many times that cluster's
    searches returned it.
    """
    by_url: dict[str, Recommendation] = {}
    counted: set[tuple[str, int]] = set()
    skipped = 0

    for pos, cluster_name, urls in results:
        log.debug("Processing cluster %r with %d results", cluster_name, len(urls))
        for item in urls:
            if library.contains(item):
                skipped += 1
                continue
            if (item.url, pos) in counted:
                continue
            counted.add((item.url, pos))

            existing = by_url.get(item.url)
            if existing is not None:
                existing.score += 1
                existing.appears_in_clusters.append(cluster_name)
                continue

            meta = item.metadata
            by_url[item.url] = Recommendation(
                url=item.url,
                title=meta.title,
                description=meta.description,
                site_name=meta.site_name,
                author=meta.author,
                score=1,
                appears_in_clusters=[cluster_name],
                url_library_count=item.url_library_count,
            )

    log.info(
        "Found %d unique recommendations (%d results already in library)",
        len(by_url),
        skipped,
    )
    return sorted(
        by_url.values(),
        key=lambda rec: (rec.score, rec.url_library_count),
        reverse=True,
    )


def get_recommendations(
    search: SearchProvider,
    clusters: Sequence[TopicCluster],
    existing_cards: Sequence[Card],
    max_clusters: int = DEFAULT_MAX_CLUSTERS,
    results_per_cluster: int = DEFAULT_RESULTS_PER_CLUSTER,
    *,
    threshold: float = DEFAULT_SEARCH_THRESHOLD,
    max_workers: int = DEFAULT_MAX_WORKERS,
    log: logging.Logger | None = None,
) -> list[Recommendation]:
    """Recommend URLs by searching on each cluster's keywords.

    Args:
        search: Search provider to query.
        clusters: Labelled clusters, largest first.
        existing_cards: The user's library; nothing in it is recommended.
        max_clusters: Number of leading clusters to consider.
        results_per_cluster: Result limit for each cluster's query.
        threshold: Similarity threshold passed to the provider.
        max_workers: Upper bound on concurrent provider calls.
        log: Optional logger for tracing.

    Returns:
        Recommendations sorted by score, then popularity, both descending.
    """
    log = log or logger
    library = _Library(existing_cards)
    log.info(
        "Getting recommendations (library: %d cards, %d URLs, %d signatures)",
        len(existing_cards),
        len(library.urls),
        len(library.signatures),
    )

    selected = [c for c in clusters[:max_clusters] if c.keywords]
    log.info("Using clusters: %s", ", ".join(c.name for c in selected))

    jobs: list[SearchJob] = []
    for pos, cluster in enumerate(selected):
        query = " ".join(cluster.keywords[:QUERY_KEYWORDS])
        log.debug("Searching for cluster %r with query %r", cluster.name, query)
        jobs.append(
            (
                pos,
                cluster.name,
                lambda q=query: search.semantic_search(
                    q, limit=results_per_cluster, threshold=threshold
                ),
            )
        )

    results = _run_searches(jobs, max_workers, log)
    return _merge_results(results, library, log)


def get_recommendations_by_similar_urls(
    search: SearchProvider,
    clusters: Sequence[TopicCluster],
    existing_cards: Sequence[Card],
    max_clusters: int = DEFAULT_MAX_CLUSTERS,
    cards_per_cluster: int = DEFAULT_CARDS_PER_CLUSTER,
    *,
    limit: int = DEFAULT_SIMILAR_LIMIT,
    threshold: float = DEFAULT_SIMILAR_THRESHOLD,
    max_workers: int = DEFAULT_MAX_WORKERS,
    log: logging.Logger | None = None,
) -> list[Recommendation]:
    """Recommend URLs similar to a few representative cards of each cluster.

    Same scoring and dedup rules as :func:`get_recommendations`; a URL
    surfaced by several cards of one cluster still scores once for it.
    """
    log = log or logger
    library = _Library(existing_cards)

    jobs: list[SearchJob] = []
    for pos, cluster in enumerate(clusters[:max_clusters]):
        for card in cluster.cards[:cards_per_cluster]:
            jobs.append(
                (
                    pos,
                    cluster.name,
                    lambda u=card.url: search.get_similar_urls(
                        u, limit=limit, threshold=threshold
                    ),
                )
            )
    log.info("Looking up similar URLs for %d representative cards", len(jobs))

    results = _run_searches(jobs, max_workers, log)
    return _merge_results(results, library, log)

"""Topic clustering for a card library.

The main strategy is TF-IDF + greedy agglomerative merging: every card
starts as its own cluster and the most similar pair of clusters is merged
until either the target cluster count is reached or the best similarity
falls below a floor. Each merge step scans every pair, so a run costs
O(D^3) for D cards. That is fine for a personal library of a few hundred
cards and is the scaling limit of this module.

Two cheap strategies (group by site name, group by annotation title) are
kept alongside for comparison.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from semble_recs.models import Card, TermVector, TopicCluster
from semble_recs.text import card_text, tokenize
from semble_recs.tfidf import average_vectors, build_tfidf, cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_NUM_CLUSTERS = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.3
DEFAULT_TOP_KEYWORDS = 5
MIXED_TOPICS_LABEL = "Mixed Topics"


# ── agglomerative merging ────────────────────────────────────────────


def agglomerative_cluster(
    cards: Sequence[Card],
    vectors: Sequence[TermVector],
    num_clusters: int,
    similarity_threshold: float,
    *,
    log: logging.Logger | None = None,
) -> list[TopicCluster]:
    """Merge singleton clusters pairwise by centroid similarity.

    Args:
        cards: Cards to cluster, one per vector.
        vectors: TF-IDF vector for each card.
        num_clusters: Stop once this many clusters remain.
        similarity_threshold: Stop early when the best pair is less
            similar than this, even above ``num_clusters``.
        log: Logger for merge tracing; defaults to the module logger.

    Returns:
        Unlabelled clusters in working-list order. A merged cluster keeps
        the id of its first input and is appended to the end of the list.
    """
    log = log or logger
    clusters = [
        TopicCluster(id=f"temp-{idx}", cards=[card], centroid=dict(vec))
        for idx, (card, vec) in enumerate(zip(cards, vectors, strict=True))
    ]
    log.debug("Starting with %d singleton clusters", len(clusters))

    while len(clusters) > num_clusters:
        best_sim = -1.0
        best_i = -1
        best_j = -1

        for i in range(len(clusters)):
            for j in range(i + 1, len(clusters)):
                sim = cosine_similarity(clusters[i].centroid, clusters[j].centroid)
                if sim > best_sim:
                    best_sim = sim
                    best_i = i
                    best_j = j

        if best_i < 0 or best_sim < similarity_threshold:
            log.debug("Stopping merge at similarity %.3f", best_sim)
            break

        first, second = clusters[best_i], clusters[best_j]
        log.debug(
            "Merging cluster %d (%d cards) + cluster %d (%d cards), similarity %.3f",
            best_i,
            first.size,
            best_j,
            second.size,
            best_sim,
        )
        merged = TopicCluster(
            id=first.id,
            cards=[*first.cards, *second.cards],
            centroid=average_vectors(first.centroid, second.centroid),
        )
        # best_j > best_i, so pop j first to keep i valid
        clusters.pop(best_j)
        clusters.pop(best_i)
        clusters.append(merged)

    log.debug("Final cluster count: %d", len(clusters))
    return clusters


# ── labelling ────────────────────────────────────────────────────────


def extract_top_keywords(
    docs: Sequence[Sequence[str]], top_k: int = DEFAULT_TOP_KEYWORDS
) -> list[str]:
    """Top terms by TF-IDF weight summed over a sub-corpus.

    Ties keep the order in which terms were first seen.
    """
    if not docs:
        return []

    totals: dict[str, float] = {}
    for vec in build_tfidf(docs):
        for term, weight in vec.items():
            totals[term] = totals.get(term, 0.0) + weight

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [term for term, _ in ranked[:top_k]]


def _capitalize_words(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def make_cluster_name(keywords: Sequence[str], cards: Sequence[Card]) -> str:
    """Pick a display name: two keywords, one keyword, a shared site, or a fallback."""
    if len(keywords) >= 2:
        return _capitalize_words(f"{keywords[0]} {keywords[1]}")
    if len(keywords) == 1:
        return _capitalize_words(keywords[0])

    sites = {card.site_name for card in cards if card.site_name}
    if len(sites) == 1:
        return next(iter(sites))

    return MIXED_TOPICS_LABEL


def card_keywords(cards: Sequence[Card], top_k: int = DEFAULT_TOP_KEYWORDS) -> list[str]:
    return extract_top_keywords([tokenize(card_text(card)) for card in cards], top_k)


def _by_size(clusters: list[TopicCluster]) -> list[TopicCluster]:
    return sorted(clusters, key=lambda c: c.size, reverse=True)


# ── strategies ───────────────────────────────────────────────────────


def cluster_by_tfidf(
    cards: Sequence[Card],
    num_clusters: int = DEFAULT_NUM_CLUSTERS,
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    top_keywords: int = DEFAULT_TOP_KEYWORDS,
    *,
    log: logging.Logger | None = None,
) -> list[TopicCluster]:
    """Cluster cards by title/description similarity.

    Args:
        cards: The user's library.
        num_clusters: Target number of clusters.
        similarity_threshold: Minimum cosine similarity for a merge.
        top_keywords: Keywords kept per cluster.
        log: Optional logger for tracing.

    Returns:
        Labelled clusters, largest first.
    """
    log = log or logger
    if not cards:
        return []

    log.info("Starting TF-IDF clustering for %d cards", len(cards))
    vectors = build_tfidf([tokenize(card_text(card)) for card in cards])

    merged = agglomerative_cluster(
        cards, vectors, num_clusters, similarity_threshold, log=log
    )

    labelled: list[TopicCluster] = []
    for idx, cluster in enumerate(merged):
        keywords = card_keywords(cluster.cards, top_keywords)
        labelled.append(
            cluster.model_copy(
                update={
                    "id": f"cluster-{idx}",
                    "name": make_cluster_name(keywords, cluster.cards),
                    "keywords": keywords,
                }
            )
        )

    log.info("Created %d clusters", len(labelled))
    return _by_size(labelled)


def cluster_by_site_name(cards: Sequence[Card]) -> list[TopicCluster]:
    """Group cards by the site they were saved from."""
    groups: dict[str, list[Card]] = {}
    for card in cards:
        groups.setdefault(card.site_name or "Uncategorized", []).append(card)

    return _by_size(
        [
            TopicCluster(
                id="-".join(site.lower().split()),
                name=site,
                cards=members,
                keywords=card_keywords(members),
            )
            for site, members in groups.items()
        ]
    )


def cluster_by_card_title(cards: Sequence[Card]) -> list[TopicCluster]:
    """Group cards by the title the user gave them."""
    groups: dict[str, list[Card]] = {}
    for card in cards:
        title = (card.card_content.title if card.card_content else None) or "no title"
        groups.setdefault(title, []).append(card)

    return _by_size(
        [
            TopicCluster(
                id=title,
                name=title[:1].upper() + title[1:],
                cards=members,
                keywords=card_keywords(members),
            )
            for title, members in groups.items()
        ]
    )

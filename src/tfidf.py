"""TF-IDF vectors and cosine similarity over sparse term dicts."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence

from semble_recs.models import TermVector


def build_tfidf(docs: Sequence[Sequence[str]]) -> list[TermVector]:
    """Build one TF-IDF vector per tokenised document.

    ``tf`` is the term count divided by document length and ``idf`` is
    ``ln(N / df)`` with no smoothing, so a term that occurs in every
    document (including the single-document case) gets weight 0.

    Args:
        docs: Token sequences; the list itself is the corpus.

    Returns:
        Vectors in the same order as ``docs``. Empty documents map to ``{}``.
    """
    n_docs = len(docs)
    if n_docs == 0:
        return []

    df: Counter[str] = Counter()
    for doc in docs:
        df.update(set(doc))

    vectors: list[TermVector] = []
    for doc in docs:
        vec: TermVector = {}
        # Counter keeps first-occurrence order, so vector keys do too
        for term, count in Counter(doc).items():
            vec[term] = (count / len(doc)) * math.log(n_docs / df[term])
        vectors.append(vec)
    return vectors


def cosine_similarity(a: TermVector, b: TermVector) -> float:
    """Cosine similarity between two sparse vectors; 0.0 when either is zero."""
    # Sum shared terms in sorted order so sim(a, b) == sim(b, a) exactly
    dot = 0.0
    for term in sorted(a.keys() & b.keys()):
        dot += a[term] * b[term]

    norm_a = math.sqrt(sum(w * w for w in a.values()))
    norm_b = math.sqrt(sum(w * w for w in b.values()))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return dot / (norm_a * norm_b)


def average_vectors(a: TermVector, b: TermVector) -> TermVector:
    """Elementwise mean of two vectors; a term missing on one side counts as 0."""
    merged: TermVector = {}
    for term in (*a, *b):
        if term not in merged:
            merged[term] = (a.get(term, 0.0) + b.get(term, 0.0)) / 2.0
    return merged

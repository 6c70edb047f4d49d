"""Text helpers: tokenisation and content signatures."""

from __future__ import annotations

import re

from semble_recs.models import Card

# Tokens must be longer than this to survive tokenisation.
MIN_TOKEN_LENGTH = 3

STOPWORDS: frozenset[str] = frozenset(
    "the be to of and a in that have i it for not on with he as you do at this but his by"
    " from they we say her she or an will my one all would there their what so up out if"
    " about who get which go me when make can like time no just him know take people into"
    " year your good some could them see other than then now look only come its over think"
    " also back after use two how our work first well way even new want because any these"
    " give day most us is was are been has had were said did having may should am being"
    " does here where while very much many such more less each both through before"
    " those under again further once same own onto upon really still every"
    " thing things made using used might must shall yours ours theirs itself"
    " himself herself themselves yourself above below between during without within".split()
)

_NON_WORD_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lowercase, replace punctuation with spaces, drop short words and stopwords."""
    if not text:
        return []
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [
        word
        for word in cleaned.split()
        if len(word) > MIN_TOKEN_LENGTH and word not in STOPWORDS
    ]


def card_text(card: Card) -> str:
    """Join every non-empty title/description on a card, metadata first."""
    content = card.card_content
    parts = [
        card.metadata.title,
        content.title if content else None,
        content.description if content else None,
        card.metadata.description,
    ]
    return " ".join(part for part in parts if part)


def content_signature(
    title: str | None = None,
    description: str | None = None,
    author: str | None = None,
    site_name: str | None = None,
) -> str:
    """Build the lexical fingerprint used to spot the same content under another URL.

    No case folding or punctuation stripping is applied: two items are
    duplicates only when the joined strings are exactly equal.
    """
    parts: list[str] = []
    if title:
        parts.append(title)
    if description:
        parts.append(description)
    if author:
        parts.append(f"by {author}")
    if site_name:
        parts.append(f"from {site_name}")
    return " ".join(parts)


def card_signature(card: Card) -> str:
    return content_signature(
        card.display_title,
        card.display_description,
        card.author,
        card.site_name,
    )

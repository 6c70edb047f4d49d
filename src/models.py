"""Pure data models for cards, search results, clusters, recommendations
and library overlap.

All Pydantic models live here. No I/O, no business logic. Wire models
accept the camelCase names the Semble API returns as well as the
snake_case attribute names used in Python code.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Sparse term vector: term -> non-negative weight. ``{}`` is the zero vector.
TermVector = dict[str, float]


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class UrlMetadata(BaseModel):
    """Metadata the service scraped for a URL."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str | None = None
    description: str | None = None
    site_name: str | None = Field(default=None, alias="siteName")
    author: str | None = None
    type: str | None = None
    image: str | None = None


class CardContent(BaseModel):
    """The user's own annotation of a saved URL."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str | None = None
    description: str | None = None
    note: str | None = None


class Card(BaseModel):
    """A saved document in a user's library.

    Cards are owned by the card-listing provider and treated as read-only
    by the clustering and recommendation code.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    url: str
    metadata: UrlMetadata = Field(default_factory=UrlMetadata)
    card_content: CardContent | None = Field(default=None, alias="cardContent")
    created_at: str = Field(default="", alias="createdAt")

    @property
    def display_title(self) -> str:
        if self.metadata.title:
            return self.metadata.title
        if self.card_content and self.card_content.title:
            return self.card_content.title
        return ""

    @property
    def display_description(self) -> str:
        if self.metadata.description:
            return self.metadata.description
        if self.card_content and self.card_content.description:
            return self.card_content.description
        return ""

    @property
    def site_name(self) -> str:
        return self.metadata.site_name or ""

    @property
    def author(self) -> str:
        return self.metadata.author or ""


class UrlView(BaseModel):
    """A URL returned by a search collaborator."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str
    metadata: UrlMetadata = Field(default_factory=UrlMetadata)
    url_library_count: int = Field(default=0, alias="urlLibraryCount")


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_more: bool = Field(default=False, alias="hasMore")
    current_page: int = Field(default=1, alias="currentPage")
    total_pages: int | None = Field(default=None, alias="totalPages")
    total_count: int | None = Field(default=None, alias="totalCount")


class UrlListResponse(BaseModel):
    """Envelope for the semantic-search and similar-URL endpoints."""

    urls: list[UrlView] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class UserCardsResponse(BaseModel):
    """Envelope for one page of a user's cards."""

    cards: list[Card] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class UserProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = ""
    handle: str = ""
    name: str | None = None


class LibraryEntry(BaseModel):
    """One user's saved card for a URL."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user: UserProfile
    card: Card


class LibrariesResponse(BaseModel):
    """Envelope for the "who saved this URL" endpoint."""

    libraries: list[LibraryEntry] = Field(default_factory=list)


class Collection(BaseModel):
    """A named, authored set of cards."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    uri: str = ""
    name: str = ""
    author: UserProfile = Field(default_factory=UserProfile)


class CollectionsResponse(BaseModel):
    """Envelope for the "collections containing this URL" endpoint."""

    collections: list[Collection] = Field(default_factory=list)


class CollectionDetail(Collection):
    """A collection together with its URL cards."""

    url_cards: list[Card] = Field(default_factory=list, alias="urlCards")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TopicCluster(BaseModel):
    """A group of cards sharing a common topic."""

    id: str
    name: str = ""
    cards: list[Card] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    centroid: TermVector = Field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.cards)


class Recommendation(BaseModel):
    """A URL suggested to the user, scored by how many cluster searches found it."""

    url: str
    title: str | None = None
    description: str | None = None
    site_name: str | None = None
    author: str | None = None
    score: int = 1
    appears_in_clusters: list[str] = Field(default_factory=list)
    url_library_count: int = 0


class MutualUser(BaseModel):
    """Another user whose library shares URLs with the target's."""

    id: str
    handle: str
    count: int = 0
    mutual_cards: list[Card] = Field(default_factory=list)


class CollectionOverlap(BaseModel):
    uri: str
    name: str = ""
    author: str = ""
    count: int = 0


class AuthorOverlap(BaseModel):
    handle: str
    count: int = 0


class OverlapReport(BaseModel):
    """Collections and authors sharing URLs with a source collection, most shared first."""

    collections: list[CollectionOverlap] = Field(default_factory=list)
    authors: list[AuthorOverlap] = Field(default_factory=list)

    def excluding_author(self, handle: str) -> OverlapReport:
        return OverlapReport(
            collections=[c for c in self.collections if c.author != handle],
            authors=[a for a in self.authors if a.handle != handle],
        )

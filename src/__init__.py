"""semble-recs -- topic clustering and recommendations for Semble card libraries."""

__version__ = "0.1.0"

from semble_recs.clustering import (  # noqa: F401, E402
    cluster_by_card_title,
    cluster_by_site_name,
    cluster_by_tfidf,
)
from semble_recs.models import (  # noqa: F401, E402
    Card,
    CardContent,
    Recommendation,
    TopicCluster,
    UrlMetadata,
    UrlView,
)
from semble_recs.recommendations import (  # noqa: F401, E402
    CardProvider,
    SearchProvider,
    get_recommendations,
    get_recommendations_by_similar_urls,
)
from semble_recs.overlap import (  # noqa: F401, E402
    LibraryProvider,
    find_mutual_users,
    find_overlapping_collections,
)

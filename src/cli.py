"""CLI interface for semble-recs."""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from semble_recs.clustering import cluster_by_card_title, cluster_by_site_name, cluster_by_tfidf
from semble_recs.config import SembleConfig, load_config, merge_cli_overrides
from semble_recs.errors import SembleError
from semble_recs.models import Card, MutualUser, OverlapReport, Recommendation, TopicCluster
from semble_recs.overlap import collection_uri, find_mutual_users, find_overlapping_collections
from semble_recs.recommendations import get_recommendations, get_recommendations_by_similar_urls

app = typer.Typer(
    name="semble-recs",
    help="Cluster a Semble card library by topic and recommend new URLs.",
)

console = Console()


class Strategy(str, Enum):
    TFIDF = "tfidf"
    SITE = "site"
    TITLE = "title"


class Mode(str, Enum):
    SEMANTIC = "semantic"
    SIMILAR = "similar"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from semble_recs import __version__

        console.print(f"semble-recs {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log clustering and search details."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """semble-recs - topic clusters and recommendations for a Semble library."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to a .semble.toml file."),
]


def _fail(exc: SembleError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    return typer.Exit(1)


def _settings(config_path: Optional[Path], **overrides: object) -> SembleConfig:
    try:
        return merge_cli_overrides(load_config(config_path), **overrides)
    except SembleError as exc:
        raise _fail(exc) from exc


def _load_library(config: SembleConfig, handle: str) -> list[Card]:
    client = config.to_client()
    with console.status(f"Fetching cards for {handle}..."):
        try:
            return client.fetch_user_cards(handle)
        except SembleError as exc:
            raise _fail(exc) from exc


def _cluster(config: SembleConfig, cards: list[Card], strategy: Strategy) -> list[TopicCluster]:
    if strategy is Strategy.SITE:
        return cluster_by_site_name(cards)
    if strategy is Strategy.TITLE:
        return cluster_by_card_title(cards)
    return cluster_by_tfidf(
        cards,
        config.clustering.num_clusters,
        config.clustering.similarity_threshold,
        config.clustering.top_keywords,
    )


def _clusters_table(clusters: list[TopicCluster]) -> Table:
    table = Table(title="Topic clusters")
    table.add_column("Cluster")
    table.add_column("Cards", justify="right")
    table.add_column("Keywords")
    for cluster in clusters:
        table.add_row(cluster.name, str(cluster.size), ", ".join(cluster.keywords))
    return table


def _recommendations_table(recs: list[Recommendation]) -> Table:
    table = Table(title="Recommendations")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("URL", overflow="fold")
    table.add_column("Score", justify="right")
    table.add_column("Saves", justify="right")
    table.add_column("Clusters")
    for idx, rec in enumerate(recs, start=1):
        table.add_row(
            str(idx),
            rec.title or "(untitled)",
            rec.url,
            str(rec.score),
            str(rec.url_library_count),
            ", ".join(rec.appears_in_clusters),
        )
    return table


@app.command(name="clusters")
def clusters_cmd(
    handle: Annotated[str, typer.Argument(help="Semble user handle or DID.")],
    strategy: Annotated[
        Strategy,
        typer.Option("--strategy", "-s", help="Grouping strategy."),
    ] = Strategy.TFIDF,
    num_clusters: Annotated[
        Optional[int],
        typer.Option("--clusters", "-k", help="Target number of TF-IDF clusters."),
    ] = None,
    threshold: Annotated[
        Optional[float],
        typer.Option("--threshold", "-t", help="Minimum similarity for a merge."),
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Group a user's cards into topic clusters."""
    config = _settings(config_path, num_clusters=num_clusters, similarity_threshold=threshold)
    cards = _load_library(config, handle)
    if not cards:
        console.print(f"[yellow]No cards found for {handle}.[/yellow]")
        return

    clusters = _cluster(config, cards, strategy)
    console.print(_clusters_table(clusters))
    console.print(f"{len(cards)} cards in {len(clusters)} clusters")


@app.command(name="recommend")
def recommend_cmd(
    handle: Annotated[str, typer.Argument(help="Semble user handle or DID.")],
    mode: Annotated[
        Mode,
        typer.Option("--mode", "-m", help="Search by cluster keywords or by similar URLs."),
    ] = Mode.SEMANTIC,
    strategy: Annotated[
        Strategy,
        typer.Option("--strategy", "-s", help="Grouping strategy."),
    ] = Strategy.TFIDF,
    max_clusters: Annotated[
        Optional[int],
        typer.Option("--max-clusters", help="Number of largest clusters to search from."),
    ] = None,
    per_cluster: Annotated[
        Optional[int],
        typer.Option("--per-cluster", help="Search results requested per cluster."),
    ] = None,
    cards_per_cluster: Annotated[
        Optional[int],
        typer.Option(
            "--cards-per-cluster", help="Representative cards per cluster in similar mode."
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of recommendations to show."),
    ] = 20,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Also write clusters and recommendations as JSON."),
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Recommend URLs the user has not saved yet."""
    config = _settings(
        config_path,
        max_clusters=max_clusters,
        results_per_cluster=per_cluster,
        cards_per_cluster=cards_per_cluster,
    )
    cards = _load_library(config, handle)
    if not cards:
        console.print(f"[yellow]No cards found for {handle}.[/yellow]")
        return

    clusters = _cluster(config, cards, strategy)
    client = config.to_client()
    rc = config.recommendations
    with console.status("Searching for recommendations..."):
        if mode is Mode.SIMILAR:
            recs = get_recommendations_by_similar_urls(
                client,
                clusters,
                cards,
                rc.max_clusters,
                rc.cards_per_cluster,
                limit=rc.similar_limit,
                threshold=rc.similar_threshold,
                max_workers=rc.max_workers,
            )
        else:
            recs = get_recommendations(
                client,
                clusters,
                cards,
                rc.max_clusters,
                rc.results_per_cluster,
                threshold=rc.search_threshold,
                max_workers=rc.max_workers,
            )

    if not recs:
        console.print("No recommendations found.")
    else:
        console.print(_recommendations_table(recs[:limit]))

    if output is not None:
        payload = {
            "handle": handle,
            "clusters": [c.model_dump(exclude={"centroid"}, mode="json") for c in clusters],
            "recommendations": [r.model_dump(mode="json") for r in recs],
        }
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        console.print(f"Wrote {output}")


def _share(count: int, total: int) -> str:
    return f"{count}/{total} ({count / total * 100:.1f}%)" if total else str(count)


def _mutual_users_table(users: list[MutualUser], total: int) -> Table:
    table = Table(title="Users with mutual cards")
    table.add_column("#", justify="right")
    table.add_column("Handle")
    table.add_column("DID")
    table.add_column("Mutual", justify="right")
    table.add_column("Sample URLs", overflow="fold")
    for idx, user in enumerate(users, start=1):
        sample = [card.url for card in user.mutual_cards[:3]]
        if len(user.mutual_cards) > 3:
            sample.append(f"... and {len(user.mutual_cards) - 3} more")
        table.add_row(str(idx), user.handle, user.id, _share(user.count, total), "\n".join(sample))
    return table


def _overlap_tables(report: OverlapReport, total: int, top: int, source_author: str) -> list[Table]:
    collections = Table(title=f"Overlapping collections ({len(report.collections)} total)")
    collections.add_column("#", justify="right")
    collections.add_column("Collection")
    collections.add_column("Author")
    collections.add_column("Shared", justify="right")
    collections.add_column("URI", overflow="fold")
    for idx, col in enumerate(report.collections[:top], start=1):
        author = f"{col.author} (same author)" if col.author == source_author else col.author
        collections.add_row(str(idx), col.name, author, _share(col.count, total), col.uri)

    authors = Table(title=f"Overlapping authors ({len(report.authors)} total)")
    authors.add_column("#", justify="right")
    authors.add_column("Author")
    authors.add_column("Shared", justify="right")
    for idx, author in enumerate(report.authors[:top], start=1):
        handle = author.handle
        if handle == source_author:
            handle = f"{handle} (collection author)"
        authors.add_row(str(idx), handle, _share(author.count, total))
    return [collections, authors]


@app.command(name="mutual")
def mutual_cmd(
    handle: Annotated[str, typer.Argument(help="Semble user handle or DID.")],
    top: Annotated[
        Optional[int],
        typer.Option("--top", "-n", help="Number of users to show."),
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Find the users who saved the most of the same URLs."""
    config = _settings(config_path, top_users=top)
    cards = _load_library(config, handle)
    if not cards:
        console.print(f"[yellow]No cards found for {handle}.[/yellow]")
        return

    with console.status(f"Checking who else saved {len(cards)} URLs..."):
        users = find_mutual_users(
            cards, config.to_client(), handle, max_workers=config.overlap.max_workers
        )

    if not users:
        console.print("No other users have saved these URLs.")
        return

    console.print(_mutual_users_table(users[: config.overlap.top_users], len(cards)))
    average = sum(u.count for u in users) / len(users)
    console.print(
        f"{len(cards)} URLs checked, {len(users)} users with at least one mutual card"
        f" (max {users[0].count}, average {average:.1f})"
    )


@app.command(name="collection-overlap")
def collection_overlap_cmd(
    handle: Annotated[str, typer.Argument(help="Handle of the collection's author.")],
    record_key: Annotated[str, typer.Argument(help="Record key of the collection.")],
    top: Annotated[
        Optional[int],
        typer.Option("--top", "-n", help="Number of collections and authors to show."),
    ] = None,
    others_only: Annotated[
        bool,
        typer.Option("--others-only", help="Hide collections by the same author."),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Rank collections and authors that share URLs with a collection."""
    config = _settings(config_path, top_collections=top)
    client = config.to_client()
    with console.status(f"Fetching collection {record_key}..."):
        try:
            collection = client.get_collection(handle, record_key)
        except SembleError as exc:
            raise _fail(exc) from exc

    cards = collection.url_cards
    if not cards:
        console.print(f"[yellow]No cards found in collection {record_key}.[/yellow]")
        return

    source_author = collection.author.handle
    with console.status(f"Checking {len(cards)} URLs against other collections..."):
        report = find_overlapping_collections(
            cards,
            client,
            collection_uri(handle, record_key),
            max_workers=config.overlap.max_workers,
        )
    if others_only:
        report = report.excluding_author(source_author)

    if not report.collections:
        console.print("No overlapping collections found.")
        return
    for table in _overlap_tables(report, len(cards), config.overlap.top_collections, source_author):
        console.print(table)


if __name__ == "__main__":
    app()

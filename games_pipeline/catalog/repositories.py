"""
Catalog and Purchase Repositories

SQLAlchemy queries behind the request-handling services and the
recommendation engine.

FULL-TEXT SEARCH:
Games are matched against a weighted tsvector built on the fly:

    setweight(to_tsvector('english', name),        'A')
 || setweight(to_tsvector('english', category),    'B')
 || setweight(to_tsvector('english', description), 'C')

- search(): plainto_tsquery over the user's text (all terms must match)
- recommend_by_similar(): the seed games' text turned into an OR query
  ("more like these"), so any shared term contributes to the rank

POPULARITY:
PAID purchases grouped by game, counted, sorted by count descending with
game name then id as tie-breakers.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import Text, cast, func, literal_column, select
from sqlalchemy.sql.elements import ColumnElement

from games_pipeline.shared.database import DatabaseManager
from games_pipeline.shared.models import Game, Purchase, PurchaseStatus

_ENGLISH = literal_column("'english'::regconfig")
_SIMPLE = literal_column("'simple'::regconfig")

MAX_PAGE_SIZE = 100


def search_vector() -> ColumnElement:
    """Weighted tsvector over name (A), category (B) and description (C)."""

    def weighted(column, weight: str) -> ColumnElement:
        return func.setweight(
            func.to_tsvector(_ENGLISH, func.coalesce(column, "")),
            literal_column(f"'{weight}'"),
        )

    return (
        weighted(Game.name, "A")
        .op("||")(weighted(Game.category, "B"))
        .op("||")(weighted(Game.description, "C"))
    )


def similarity_query(seed_text: str) -> ColumnElement:
    """OR-query of the stemmed terms in ``seed_text``."""
    and_query = cast(func.plainto_tsquery(_ENGLISH, seed_text), Text)
    return func.to_tsquery(_SIMPLE, func.replace(and_query, " & ", " | "))


@dataclass
class SearchPage:
    """One page of search results; ``items`` are game dicts with a ``score``."""

    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class PopularGame:
    game: Game
    purchases: int


# ==============================================================================
# GAMES
# ==============================================================================


class GameRepository:
    """Catalog queries."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get_by_id(self, game_id: str) -> Optional[Game]:
        with self.db_manager.get_session() as session:
            return session.get(Game, game_id)

    def get_many(self, game_ids: Sequence[str]) -> List[Game]:
        """Games for ``game_ids`` in the given order; unknown ids are skipped."""
        if not game_ids:
            return []
        with self.db_manager.get_session() as session:
            found = {
                game.id: game
                for game in session.scalars(select(Game).where(Game.id.in_(list(game_ids))))
            }
        return [found[game_id] for game_id in game_ids if game_id in found]

    def add_many(self, games: Iterable[Game]) -> int:
        games = list(games)
        with self.db_manager.get_session() as session:
            session.add_all(games)
        return len(games)

    def count(self) -> int:
        with self.db_manager.get_session() as session:
            return session.execute(select(func.count()).select_from(Game)).scalar_one()

    def search(
        self,
        query: str,
        category: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> SearchPage:
        """
        Weighted full-text search.

        Args:
            query: Free text; blank lists the (filtered) catalog by price
            category: Exact category filter
            page: 1-based page number (clamped to >= 1)
            page_size: Results per page (clamped to 1..100)

        Returns:
            SearchPage sorted by score descending, then price ascending
        """
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        filters = []
        if category:
            filters.append(Game.category == category)

        if query and query.strip():
            ts_query = func.plainto_tsquery(_ENGLISH, query.strip())
            vector = search_vector()
            score = func.ts_rank(vector, ts_query)
            filters.append(vector.op("@@")(ts_query))
        else:
            score = literal_column("0.0")

        # Order by the label; PostgreSQL rejects a bare constant in ORDER BY
        score = score.label("score")
        statement = (
            select(Game, score)
            .where(*filters)
            .order_by(score.desc(), Game.price.asc(), Game.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_statement = select(func.count()).select_from(Game).where(*filters)

        with self.db_manager.get_session() as session:
            total = session.execute(count_statement).scalar_one()
            rows = session.execute(statement).all()

        items = []
        for game, row_score in rows:
            item = game.to_dict()
            item["score"] = float(row_score)
            items.append(item)

        return SearchPage(items=items, total=total, page=page, page_size=page_size)

    def recommend_by_similar(
        self,
        seed_games: Sequence[Game],
        exclude_ids: Set[str],
        limit: int,
    ) -> List[Tuple[Game, float]]:
        """
        Games textually similar to ``seed_games``.

        Args:
            seed_games: Games whose name/category/description seed the query
            exclude_ids: Game ids never to return
            limit: Maximum results

        Returns:
            (game, rank) pairs, best match first
        """
        seed_text = " ".join(
            " ".join(filter(None, (game.name, game.category, game.description)))
            for game in seed_games
        ).strip()
        if not seed_text or limit < 1:
            return []

        vector = search_vector()
        ts_query = similarity_query(seed_text)
        rank = func.ts_rank(vector, ts_query)

        statement = select(Game, rank.label("rank")).where(vector.op("@@")(ts_query))
        if exclude_ids:
            statement = statement.where(Game.id.not_in(list(exclude_ids)))
        statement = statement.order_by(rank.desc(), Game.price.asc(), Game.id).limit(limit)

        with self.db_manager.get_session() as session:
            return [(game, float(game_rank)) for game, game_rank in session.execute(statement)]


# ==============================================================================
# PURCHASES
# ==============================================================================


class PurchaseRepository:
    """Purchase writes and the aggregations the recommender needs."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def create(self, purchase: Purchase) -> str:
        with self.db_manager.get_session() as session:
            session.add(purchase)
        return purchase.id

    def add_many(self, purchases: Iterable[Purchase]) -> int:
        purchases = list(purchases)
        with self.db_manager.get_session() as session:
            session.add_all(purchases)
        return len(purchases)

    def get_recent_paid_game_ids(self, user_id: str, limit: int) -> List[str]:
        """Game ids of the user's latest ``limit`` PAID purchases, newest first."""
        statement = (
            select(Purchase.game_id)
            .where(Purchase.user_id == user_id, Purchase.status == PurchaseStatus.PAID.value)
            .order_by(Purchase.created_at.desc(), Purchase.id)
            .limit(limit)
        )
        with self.db_manager.get_session() as session:
            game_ids = session.scalars(statement).all()

        # Same game bought twice seeds once
        return list(dict.fromkeys(game_ids))

    def get_paid_game_id_set(self, user_id: str) -> Set[str]:
        """Every game id the user has a PAID purchase for."""
        statement = select(Purchase.game_id).where(
            Purchase.user_id == user_id, Purchase.status == PurchaseStatus.PAID.value
        )
        with self.db_manager.get_session() as session:
            return set(session.scalars(statement))

    def get_top_popular(self, limit: int) -> List[PopularGame]:
        purchases = func.count(Purchase.id).label("purchases")
        statement = (
            select(Game, purchases)
            .join(Purchase, Purchase.game_id == Game.id)
            .where(Purchase.status == PurchaseStatus.PAID.value)
            .group_by(Game.id)
            .order_by(purchases.desc(), Game.name.asc(), Game.id.asc())
            .limit(limit)
        )
        with self.db_manager.get_session() as session:
            return [PopularGame(game=game, purchases=count) for game, count in session.execute(statement)]

"""
Recommendation and Popularity Aggregator

popular(limit):
    PAID purchases grouped by game, most purchased first.

recommend(user_id, limit):
┌─────────────────────────────────────────────────────────────────────────┐
│  1. Seeds = games of the user's latest ``history_size`` PAID purchases  │
│  2. No seeds → exactly popular(limit)                                   │
│  3. Otherwise: full-text "more like these" over the seeds' text,        │
│     excluding EVERY game the user has paid for                          │
└─────────────────────────────────────────────────────────────────────────┘

Every result carries its source ("popular" or "similar") so callers can
tell a fallback from a personal recommendation.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from games_pipeline.catalog.repositories import PopularGame
from games_pipeline.shared.models import Game

SOURCE_POPULAR = "popular"
SOURCE_SIMILAR = "similar"

DEFAULT_HISTORY_SIZE = 10


class GameReader(Protocol):
    def get_many(self, game_ids: Sequence[str]) -> List[Game]:
        ...

    def recommend_by_similar(
        self, seed_games: Sequence[Game], exclude_ids: Set[str], limit: int
    ) -> List[Tuple[Game, float]]:
        ...


class PurchaseReader(Protocol):
    def get_recent_paid_game_ids(self, user_id: str, limit: int) -> List[str]:
        ...

    def get_paid_game_id_set(self, user_id: str) -> Set[str]:
        ...

    def get_top_popular(self, limit: int) -> List[PopularGame]:
        ...


@dataclass(frozen=True)
class Recommendation:
    """
    One recommended game.

    ``score`` is the purchase count for popular results and the text rank
    for similar ones.
    """

    game_id: str
    name: str
    category: str
    price: Optional[Decimal]
    score: float
    source: str

    @classmethod
    def from_game(cls, game: Game, score: float, source: str) -> "Recommendation":
        return cls(
            game_id=game.id,
            name=game.name,
            category=game.category,
            price=game.price,
            score=float(score),
            source=source,
        )


@dataclass(frozen=True)
class RecommendationResult:
    source: str
    items: List[Recommendation]
    history_game_ids: Tuple[str, ...] = ()

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_POPULAR


class RecommendationEngine:
    """
    Args:
        games: Catalog reader (full-text similarity)
        purchases: Purchase reader (history and popularity)
        history_size: How many recent PAID purchases seed a recommendation
    """

    def __init__(
        self,
        games: GameReader,
        purchases: PurchaseReader,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        if history_size < 1:
            raise ValueError("history_size must be >= 1")
        self.games = games
        self.purchases = purchases
        self.history_size = history_size

    def popular(self, limit: int) -> List[Recommendation]:
        """
        Most purchased games (PAID only).

        Raises:
            ValueError: limit < 1
        """
        _check_limit(limit)
        return [
            Recommendation.from_game(entry.game, entry.purchases, SOURCE_POPULAR)
            for entry in self.purchases.get_top_popular(limit)
        ]

    def recommend(self, user_id: str, limit: int) -> RecommendationResult:
        """
        Personal recommendations, or popular games for users without history.

        Raises:
            ValueError: limit < 1
        """
        _check_limit(limit)

        seed_ids = self.purchases.get_recent_paid_game_ids(user_id, self.history_size)
        if not seed_ids:
            return RecommendationResult(source=SOURCE_POPULAR, items=self.popular(limit))

        seed_games = self.games.get_many(seed_ids)
        owned = self.purchases.get_paid_game_id_set(user_id) | set(seed_ids)

        matches = self.games.recommend_by_similar(seed_games, owned, limit)
        items = [
            Recommendation.from_game(game, rank, SOURCE_SIMILAR)
            for game, rank in matches
            if game.id not in owned
        ][:limit]

        return RecommendationResult(
            source=SOURCE_SIMILAR,
            items=items,
            history_game_ids=tuple(seed_ids),
        )


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

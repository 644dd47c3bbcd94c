"""
Request-Handling Services

The synchronous side of the pipeline. Every meaningful operation records a
DomainEvent through the EventLogAppender; game activity and purchases are
also announced on SQS through fire-and-forget QueuePublishers.

ORDER OF EFFECTS (start_game / queue_game):
1. Look up the game (GameNotFoundError when missing)
2. Record the domain event (event log policy decides if a failure aborts)
3. Publish the queue message (never fails the request)
"""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from games_pipeline.catalog.recommendations import (
    Recommendation,
    RecommendationEngine,
    RecommendationResult,
)
from games_pipeline.catalog.repositories import GameRepository, PurchaseRepository, SearchPage
from games_pipeline.producer.publisher import QueuePublisher
from games_pipeline.shared.errors import GameNotFoundError
from games_pipeline.shared.event_log import EventLogAppender
from games_pipeline.shared.events import NONE_AGGREGATE_ID, DomainEvent, EventType, utcnow
from games_pipeline.shared.logger import CorrelationAdapter
from games_pipeline.shared.models import Game, Purchase, PurchaseStatus


class GameService:
    """
    Catalog operations.

    Args:
        games: Catalog repository
        recommendations: Popularity/recommendation engine
        event_log: Appender with the configured failure policy
        publisher: Games events queue publisher
    """

    def __init__(
        self,
        games: GameRepository,
        recommendations: RecommendationEngine,
        event_log: EventLogAppender,
        publisher: QueuePublisher,
    ):
        self.games = games
        self.recommendations = recommendations
        self.event_log = event_log
        self.publisher = publisher
        self.logger = logging.getLogger(__name__)

    def get_game(self, game_id: str) -> Game:
        game = self.games.get_by_id(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    def start_game(self, game_id: str, user_id: str) -> bool:
        """
        Record that ``user_id`` started playing ``game_id``.

        Raises:
            GameNotFoundError: Unknown game
            AppendError: Event log unavailable under the strict policy
        """
        game = self.get_game(game_id)

        self.event_log.record(
            DomainEvent.create(
                aggregate_id=game_id,
                type=EventType.GAME_STARTED,
                payload={"GameId": game_id, "UserId": user_id, "GameName": game.name},
            )
        )
        self.publisher.publish(
            EventType.GAME_STARTED, game_id, user_id, {"GameName": game.name or ""}
        )

        CorrelationAdapter(self.logger, {"correlation_id": game_id}).info(
            "Game started", extra={"user_id": user_id}
        )
        return True

    def queue_game(self, game_id: str, user_id: str) -> bool:
        """Record that ``user_id`` queued ``game_id``; same contract as start_game."""
        game = self.get_game(game_id)
        queued_at = utcnow().isoformat()

        self.event_log.record(
            DomainEvent.create(
                aggregate_id=game_id,
                type=EventType.GAME_QUEUED,
                payload={
                    "GameId": game_id,
                    "UserId": user_id,
                    "GameName": game.name,
                    "QueuedAt": queued_at,
                },
            )
        )
        self.publisher.publish(
            EventType.GAME_QUEUED,
            game_id,
            user_id,
            {"GameName": game.name or "", "QueuedAt": queued_at},
        )

        CorrelationAdapter(self.logger, {"correlation_id": game_id}).info(
            "Game queued", extra={"user_id": user_id}
        )
        return True

    def get_popular(self, top: int) -> List[Recommendation]:
        result = self.recommendations.popular(top)

        self.event_log.record(
            DomainEvent.create(
                aggregate_id=NONE_AGGREGATE_ID,
                type=EventType.GAME_POPULAR_REQUESTED,
                payload={"Top": top, "Count": len(result)},
            )
        )
        return result

    def get_recommendations(self, user_id: str, limit: int = 10) -> RecommendationResult:
        result = self.recommendations.recommend(user_id, limit)

        if result.is_fallback:
            event_type = EventType.RECOMMENDATIONS_FALLBACK_POPULAR
            payload = {
                "UserId": user_id,
                "Limit": limit,
                "PurchasedHistoryCount": 0,
                "ResultCount": len(result.items),
            }
        else:
            event_type = EventType.RECOMMENDATIONS_GENERATED
            payload = {
                "UserId": user_id,
                "Limit": limit,
                "PurchasedHistoryCount": len(result.history_game_ids),
                "LikeIds": list(result.history_game_ids),
                "ResultCount": len(result.items),
            }

        self.event_log.record(DomainEvent.create(user_id, event_type, payload))
        return result

    def search(
        self,
        query: str,
        category: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> SearchPage:
        result = self.games.search(query, category=category, page=page, page_size=page_size)

        self.event_log.record(
            DomainEvent.create(
                aggregate_id=NONE_AGGREGATE_ID,
                type=EventType.GAME_SEARCH_EXECUTED,
                payload={
                    "Query": {
                        "Text": query,
                        "Category": category,
                        "Page": result.page,
                        "PageSize": result.page_size,
                    },
                    "Count": len(result.items),
                },
            )
        )
        return result


class PurchaseService:
    """
    Purchase creation.

    The purchase is stored PENDING; the payments side (outside this
    package) consumes the payments queue and settles it to PAID or FAILED.
    """

    def __init__(
        self,
        purchases: PurchaseRepository,
        games: GameRepository,
        event_log: EventLogAppender,
        payments_publisher: QueuePublisher,
    ):
        self.purchases = purchases
        self.games = games
        self.event_log = event_log
        self.payments_publisher = payments_publisher
        self.logger = logging.getLogger(__name__)

    def create(self, game_id: str, amount: Decimal, user_id: str) -> str:
        """
        Create a PENDING purchase and announce it.

        Returns:
            The new purchase id

        Raises:
            ValueError: amount is not positive
            GameNotFoundError: Unknown game
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Purchase amount must be positive")
        if self.games.get_by_id(game_id) is None:
            raise GameNotFoundError(game_id)

        purchase = Purchase(
            id=str(uuid.uuid4()),
            user_id=user_id,
            game_id=game_id,
            amount=amount,
            status=PurchaseStatus.PENDING.value,
            created_at=utcnow(),
        )
        purchase_id = self.purchases.create(purchase)

        self.event_log.record(
            DomainEvent.create(
                aggregate_id=purchase_id,
                type=EventType.GAME_PURCHASED,
                payload={"UserId": user_id, "GameId": game_id, "Amount": str(amount)},
            )
        )
        self.payments_publisher.publish(
            EventType.GAME_PURCHASED,
            purchase_id,
            user_id,
            {"PurchaseId": purchase_id, "GameId": game_id, "Amount": str(amount)},
        )

        CorrelationAdapter(self.logger, {"correlation_id": purchase_id}).info(
            "Purchase created",
            extra={"game_id": game_id, "user_id": user_id, "amount": str(amount)},
        )
        return purchase_id

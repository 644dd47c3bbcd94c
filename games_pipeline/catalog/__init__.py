"""
Games Catalog Package

Request-handling side of the pipeline:
- repositories.py: SQLAlchemy catalog/purchase queries and full-text search
- recommendations.py: popularity and "more like these" recommendations
- service.py: GameService / PurchaseService (event log + queue publishing)
"""

__version__ = "1.0.0"

from games_pipeline.catalog.recommendations import RecommendationEngine
from games_pipeline.catalog.service import GameService, PurchaseService

__all__ = [
    "GameService",
    "PurchaseService",
    "RecommendationEngine",
]

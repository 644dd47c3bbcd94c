"""
Mock Data Generator for the Games Catalog

Generates a reproducible catalog, user pool, purchase history and a stream
of player activity for demos and integration tests.

DATA GENERATION STRATEGY:
1. Fixed catalog: hand-written titles first, Faker-made titles after that
2. Fixed user pool (uuid user ids)
3. Purchase history drawn from both pools (mostly PAID)
4. Activity stream: GameStarted / GameQueued requests for random users

Everything derives from one seed, so two generators with the same seed
produce identical data.
"""

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from faker import Faker

RANDOM_SEED = 42

# (name, category, description, price)
CATALOG_DATA = [
    ("Hollow Knight", "Metroidvania", "Explore a vast ruined kingdom of insects and heroes", "14.99"),
    ("Celeste", "Platformer", "Climb a mountain in a tight precision platformer", "19.99"),
    ("Dead Cells", "Roguelike", "Roguelite action platformer with permadeath runs", "24.99"),
    ("Hades", "Roguelike", "Battle out of the underworld in a mythic roguelike dungeon crawler", "24.99"),
    ("Stardew Valley", "Simulation", "Farming life simulation in a cozy country town", "14.99"),
    ("Factorio", "Strategy", "Build and automate factories on an alien planet", "35.00"),
    ("Into the Breach", "Strategy", "Turn-based tactics with mechs defending cities", "14.99"),
    ("Ori and the Blind Forest", "Metroidvania", "Beautiful forest platformer with exploration", "19.99"),
    ("Slay the Spire", "Roguelike", "Deck-building roguelike climbing a spire", "24.99"),
    ("Terraria", "Sandbox", "Dig, fight, explore and build in a 2D sandbox world", "9.99"),
    ("Minecraft", "Sandbox", "Blocky sandbox of mining crafting and survival", "26.95"),
    ("Portal 2", "Puzzle", "First-person puzzle game with portals and physics", "9.99"),
    ("The Witness", "Puzzle", "Open island puzzle exploration with line puzzles", "39.99"),
    ("Rocket League", "Sports", "Soccer with rocket-powered cars", "0.00"),
    ("Among Us", "Party", "Social deduction party game in space", "4.99"),
]

CATEGORIES = sorted({category for _, category, _, _ in CATALOG_DATA})

# Purchase status distribution: (status, weight)
PURCHASE_STATUSES = [("PAID", 80), ("PENDING", 12), ("FAILED", 8)]


class MockDataGenerator:
    """
    Seeded generator for games, users, purchases and activity.

    Attributes:
        games: Catalog entries (dicts with Game column names)
        users: User ids
    """

    def __init__(self, seed: int = RANDOM_SEED, catalog_size: int = 50, user_count: int = 20):
        """
        Args:
            seed: Random seed for reproducibility (default: 42)
            catalog_size: Number of games in the catalog
            user_count: Number of simulated users
        """
        self.seed = seed
        self.random = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

        self.games = self._generate_games(catalog_size)
        self.users = [self.fake.uuid4() for _ in range(user_count)]

    def _generate_games(self, count: int) -> List[Dict[str, Any]]:
        games = []

        for name, category, description, price in CATALOG_DATA[:count]:
            games.append(self._game(name, category, description, Decimal(price)))

        for _ in range(count - len(games)):
            name = " ".join(self.fake.words(nb=self.random.randint(1, 3))).title()
            category = self.random.choice(CATEGORIES)
            description = self.fake.sentence(nb_words=10)
            price = Decimal(str(round(self.random.uniform(0.99, 59.99), 2)))
            games.append(self._game(name, category, description, price))

        return games

    def _game(self, name: str, category: str, description: str, price: Decimal) -> Dict[str, Any]:
        return {
            "id": self.fake.uuid4(),
            "name": name,
            "category": category,
            "description": description,
            "release_date": self.fake.date_between(start_date="-15y", end_date="today"),
            "price": price,
        }

    def get_random_game(self) -> Dict[str, Any]:
        return self.random.choice(self.games)

    def get_random_user(self) -> str:
        return self.random.choice(self.users)

    def generate_purchase(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Generate one purchase row.

        The amount is the game's price (at least 0.99 so free games still
        satisfy the positive-amount constraint). Status is mostly PAID.

        Example:
            >>> generator = MockDataGenerator()
            >>> generator.generate_purchase()["status"] in {"PAID", "PENDING", "FAILED"}
            True
        """
        game = self.get_random_game()
        statuses, weights = zip(*PURCHASE_STATUSES)
        created_at = datetime.now(timezone.utc) - timedelta(
            minutes=self.random.randint(0, 60 * 24 * 90)
        )

        return {
            "id": self.fake.uuid4(),
            "user_id": user_id or self.get_random_user(),
            "game_id": game["id"],
            "amount": max(game["price"], Decimal("0.99")),
            "status": self.random.choices(statuses, weights=weights)[0],
            "created_at": created_at,
        }

    def generate_purchases(self, count: int) -> List[Dict[str, Any]]:
        return [self.generate_purchase() for _ in range(count)]

    def generate_activity(self) -> Tuple[str, str, str]:
        """
        Pick one player action.

        Returns:
            (action, game_id, user_id) where action is "start" (3 in 4)
            or "queue"
        """
        action = "start" if self.random.random() < 0.75 else "queue"
        return action, self.get_random_game()["id"], self.get_random_user()

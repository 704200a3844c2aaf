"""Pytest configuration and fixtures.

Every test gets its own SQLite file under pytest's tmp_path, a game with
all capabilities enabled, and three registered devices.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from db import Database
from services import Services
from stores import Stores
from utils.auth import hash_token

GAME = "birdwars"
PLAYERS = {
    "alice": ("dev-alice", "token-alice", "Alice"),
    "bob": ("dev-bob", "token-bob", "Bob"),
    "carol": ("dev-carol", "token-carol", "Carol"),
}

MAP_DATA = {
    "unitPlacement": [
        {"birdType": "BIRD2", "gridX": 1, "gridZ": 2, "player": 1},
        {"birdType": "BIRD3", "gridX": 5, "gridZ": 6, "player": 2},
    ],
    "itemPlacement": [
        {"itemType": "rock", "gridX": 3, "gridZ": 3, "canMoveOn": False},
        {"itemType": "grass", "gridX": 4, "gridZ": 4, "canMoveOn": True},
    ],
}


@pytest.fixture
async def database(tmp_path):
    db = Database(str(tmp_path / "test.db"))
    await db.init()
    yield db
    await db.close()


@pytest.fixture
async def stores(database):
    s = Stores(database)
    await s.identities.create_game(GAME, "Bird Wars", ["async", "data", "leaderboard"])
    for device_id, token, name in PLAYERS.values():
        await s.identities.register_identity(GAME, device_id, hash_token(token), display_name=name)
    return s


@pytest.fixture
def services(stores):
    return Services(stores)


@pytest.fixture
def machine(services):
    return services.battles


@pytest.fixture
def test_app(services):
    """App with the lifespan bypassed; the fixture-owned database is injected directly."""
    from main import create_app

    app = create_app()
    app.state.services = services
    return app


@pytest.fixture
async def client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac


def auth(player: str) -> dict:
    return {"Authorization": f"Bearer {PLAYERS[player][1]}"}


def device(player: str) -> str:
    return PLAYERS[player][0]


def caller(player: str) -> dict:
    device_id, _, name = PLAYERS[player]
    return {"device_id": device_id, "display_name": name}

"""Maintenance task bodies, run against the test database without a broker."""
import pytest

from conftest import GAME, MAP_DATA, device
from workers.tasks import abandon_stale, reconcile_games


@pytest.mark.asyncio
async def test_reconcile_games_covers_every_active_game(database, stores, machine):
    battle = await machine.create(GAME, device("alice"), MAP_DATA)
    await machine.join(GAME, battle["battle_id"], device("bob"))
    await stores.identities.replace_counters(GAME, {})

    results = await reconcile_games(database.db_path)

    assert results == [{"game_slug": GAME, "identities_updated": 2, "battles_scanned": 1}]
    bob = await stores.identities.get_identity(GAME, device("bob"))
    assert bob["total_battles"] == 1


@pytest.mark.asyncio
async def test_abandon_stale_only_touches_pending(database, machine):
    pending = await machine.create(GAME, device("alice"), MAP_DATA)
    active = await machine.create(GAME, device("bob"), MAP_DATA)
    await machine.join(GAME, active["battle_id"], device("carol"))

    assert await abandon_stale(database.db_path, 30) == 0
    assert await abandon_stale(database.db_path, 0) == 1

    assert (await machine.get(GAME, pending["battle_id"]))["status"] == "abandoned"
    assert (await machine.get(GAME, active["battle_id"]))["status"] == "active"

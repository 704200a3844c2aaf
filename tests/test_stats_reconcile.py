"""Player statistics and counter reconciliation from battle history."""
import pytest

from conftest import GAME, MAP_DATA, device
from services import player_stats, reconcile_counters
from stores import IdentityNotFound

ALICE, BOB, CAROL = device("alice"), device("bob"), device("carol")


async def play_out(machine):
    """alice beats bob by forfeit, bob and carol draw, carol waits in a pending battle."""
    first = await machine.create(GAME, ALICE, MAP_DATA)
    await machine.join(GAME, first["battle_id"], BOB)
    await machine.submit_turn(GAME, first["battle_id"], ALICE, [])
    await machine.forfeit(GAME, first["battle_id"], BOB)

    second = await machine.create(GAME, BOB, MAP_DATA)
    await machine.join(GAME, second["battle_id"], CAROL)
    await machine.submit_turn(GAME, second["battle_id"], BOB, [], game_over={"reason": "draw"})

    await machine.create(GAME, CAROL, MAP_DATA)


@pytest.mark.asyncio
async def test_player_stats_come_from_history(stores, machine):
    await play_out(machine)

    bob = await player_stats(stores.identities, stores.battles, GAME, BOB)

    assert bob["display_name"] == "Bob"
    assert bob["total_battles"] == 2
    assert bob["completed_battles"] == 2
    assert (bob["wins"], bob["losses"], bob["draws"]) == (0, 1, 1)
    assert bob["win_rate"] == "0.0%"
    assert bob["total_turns_submitted"] == 1

    alice = await player_stats(stores.identities, stores.battles, GAME, ALICE)
    assert alice["win_rate"] == "100.0%"
    assert alice["counters"]["wins"] == 1

    carol = await player_stats(stores.identities, stores.battles, GAME, CAROL)
    assert carol["pending_battles"] == 1
    assert carol["completed_battles"] == 1

    with pytest.raises(IdentityNotFound):
        await player_stats(stores.identities, stores.battles, GAME, "dev-nobody")


@pytest.mark.asyncio
async def test_reconcile_repairs_drifted_counters(stores, machine):
    await play_out(machine)
    before = {d: await stores.identities.get_identity(GAME, d) for d in (ALICE, BOB, CAROL)}

    await stores.identities.replace_counters(GAME, {ALICE: {"wins": 40}, BOB: {"total_turns": 9}})
    result = await reconcile_counters(stores.identities, stores.battles, GAME)

    assert result == {"game_slug": GAME, "identities_updated": 3, "battles_scanned": 3}
    for d in (ALICE, BOB, CAROL):
        assert await stores.identities.get_identity(GAME, d) == before[d]

    alice = await stores.identities.get_identity(GAME, ALICE)
    assert (alice["wins"], alice["losses"], alice["total_turns"], alice["total_battles"]) == (1, 0, 1, 1)
    carol = await stores.identities.get_identity(GAME, CAROL)
    assert (carol["draws"], carol["total_battles"]) == (1, 2)


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(stores, machine):
    await play_out(machine)

    await reconcile_counters(stores.identities, stores.battles, GAME)
    once = await stores.identities.get_identity(GAME, BOB)
    await reconcile_counters(stores.identities, stores.battles, GAME)
    twice = await stores.identities.get_identity(GAME, BOB)

    assert once == twice

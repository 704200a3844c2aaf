"""Battle lifecycle, turn ordering and race handling."""
import asyncio

import pytest

from conftest import GAME, MAP_DATA, device
from services import BattleStateMachine, DefaultTurnRules
from stores import (
    BattleNotFound,
    CapacityExceeded,
    Conflict,
    InvalidState,
    NotParticipant,
    OutOfTurn,
    SelfJoin,
    ValidationError,
)

ALICE, BOB, CAROL = device("alice"), device("bob"), device("carol")


async def active_battle(machine, map_data=MAP_DATA):
    battle = await machine.create(GAME, ALICE, map_data)
    return await machine.join(GAME, battle["battle_id"], BOB)


@pytest.mark.asyncio
async def test_create_starts_pending(machine):
    battle = await machine.create(GAME, ALICE, MAP_DATA, is_private=True)

    assert battle["status"] == "pending"
    assert battle["player1_device_id"] == ALICE
    assert battle["player2_device_id"] is None
    assert battle["current_turn"] == 0
    assert battle["current_player_index"] == 0
    assert battle["is_private"] is True
    assert battle["display_name"].count("-") == 2


@pytest.mark.asyncio
async def test_join_builds_initial_state_from_placements(machine):
    battle = await active_battle(machine)

    assert battle["status"] == "active"
    assert battle["player2_device_id"] == BOB
    assert battle["last_turn_at"] is not None
    units = battle["current_state"]["units"]
    assert len(units) == 2
    assert {(u["x"], u["y"], u["owner"]) for u in units} == {(1, 2, ALICE), (5, 6, BOB)}
    assert all(u["hp"] == 10 for u in units)
    assert battle["current_state"]["blocked_tiles"] == [{"x": 3, "y": 3, "item_type": "rock"}]


@pytest.mark.asyncio
async def test_unit_without_player_tag_belongs_to_player1(machine):
    map_data = {"unitPlacement": [{"gridX": 0, "gridZ": 0}]}
    battle = await active_battle(machine, map_data)

    (unit,) = battle["current_state"]["units"]
    assert unit["owner"] == ALICE
    assert unit["type"] == "BIRD1"
    assert unit["unit_id"] == f"{ALICE}_u0"


@pytest.mark.asyncio
async def test_malformed_placement_is_rejected(machine):
    with pytest.raises(ValidationError):
        await machine.create(GAME, ALICE, {"unitPlacement": [{"gridX": "left", "gridZ": 1}]})
    with pytest.raises(ValidationError):
        await machine.create(GAME, ALICE, {"itemPlacement": [{"gridX": 1, "gridZ": 1}]})


@pytest.mark.asyncio
async def test_join_rules(machine):
    battle = await machine.create(GAME, ALICE, MAP_DATA)

    with pytest.raises(SelfJoin):
        await machine.join(GAME, battle["battle_id"], ALICE)
    await machine.join(GAME, battle["battle_id"], BOB)
    with pytest.raises(InvalidState):
        await machine.join(GAME, battle["battle_id"], CAROL)
    with pytest.raises(BattleNotFound):
        await machine.join(GAME, "missing", CAROL)


@pytest.mark.asyncio
async def test_concurrent_joins_have_one_winner(machine):
    battle = await machine.create(GAME, ALICE, MAP_DATA)

    results = await asyncio.gather(
        machine.join(GAME, battle["battle_id"], BOB),
        machine.join(GAME, battle["battle_id"], CAROL),
        return_exceptions=True,
    )

    joined = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(joined) == 1 and len(failed) == 1
    assert isinstance(failed[0], (InvalidState, Conflict))
    stored = await machine.get(GAME, battle["battle_id"])
    assert stored["status"] == "active"
    assert stored["player2_device_id"] == joined[0]["player2_device_id"]
    assert stored["player2_device_id"] in (BOB, CAROL)


@pytest.mark.asyncio
async def test_capacity_applies_to_create_and_join(services):
    machine = BattleStateMachine(services.stores.battles, services.stores.identities, max_active=2)
    await machine.create(GAME, ALICE)
    await machine.create(GAME, ALICE)
    with pytest.raises(CapacityExceeded):
        await machine.create(GAME, ALICE)

    carols = await machine.create(GAME, CAROL)
    with pytest.raises(CapacityExceeded):
        await machine.join(GAME, carols["battle_id"], ALICE)

    assert await services.stores.battles.count_active_for(GAME, ALICE) == 2


@pytest.mark.asyncio
async def test_turns_alternate_and_poll_returns_them_in_order(machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]

    after_a, turn_a = await machine.submit_turn(GAME, bid, ALICE, [{"type": "wait"}])
    assert turn_a["turn_number"] == 1
    assert (after_a["current_turn"], after_a["current_player_index"]) == (1, 1)

    after_b, turn_b = await machine.submit_turn(GAME, bid, BOB, [{"type": "end_turn"}])
    assert turn_b["turn_number"] == 2
    assert (after_b["current_turn"], after_b["current_player_index"]) == (2, 0)

    everything = await machine.poll(GAME, bid, 0)
    assert everything["has_new_turns"] is True
    assert [t["turn_number"] for t in everything["new_turns"]] == [1, 2]
    assert [t["device_id"] for t in everything["new_turns"]] == [ALICE, BOB]

    latest = await machine.poll(GAME, bid, 1)
    assert [t["turn_number"] for t in latest["new_turns"]] == [2]

    caught_up = await machine.poll(GAME, bid, 2)
    assert caught_up["has_new_turns"] is False
    assert caught_up["new_turns"] == []


@pytest.mark.asyncio
async def test_poll_is_idempotent(machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]
    await machine.submit_turn(GAME, bid, ALICE, [])

    first = await machine.poll(GAME, bid, 0)
    second = await machine.poll(GAME, bid, 0)
    assert first == second


@pytest.mark.asyncio
async def test_poll_turns_match_the_battle_snapshot(services, machine, monkeypatch):
    battle = await active_battle(machine)
    bid = battle["battle_id"]
    await machine.submit_turn(GAME, bid, ALICE, [])

    battles = services.stores.battles
    read_turns = battles.get_turns_since

    async def turn_lands_between_reads(*args, **kwargs):
        await machine.submit_turn(GAME, bid, BOB, [])
        return await read_turns(*args, **kwargs)

    monkeypatch.setattr(battles, "get_turns_since", turn_lands_between_reads)
    result = await machine.poll(GAME, bid, 0)

    assert result["current_turn"] == 1
    assert result["current_player_index"] == 1
    assert [t["turn_number"] for t in result["new_turns"]] == [1]

    monkeypatch.setattr(battles, "get_turns_since", read_turns)
    later = await machine.poll(GAME, bid, 1)
    assert later["current_turn"] == 2
    assert [t["turn_number"] for t in later["new_turns"]] == [2]


@pytest.mark.asyncio
async def test_out_of_turn_leaves_battle_unchanged(machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]

    with pytest.raises(OutOfTurn):
        await machine.submit_turn(GAME, bid, BOB, [])
    with pytest.raises(NotParticipant):
        await machine.submit_turn(GAME, bid, CAROL, [])

    stored = await machine.get(GAME, bid)
    assert stored["current_turn"] == 0
    assert stored["current_player_index"] == 0
    assert (await machine.poll(GAME, bid, 0))["new_turns"] == []


@pytest.mark.asyncio
async def test_submit_requires_active_battle(machine):
    battle = await machine.create(GAME, ALICE, MAP_DATA)
    with pytest.raises(InvalidState):
        await machine.submit_turn(GAME, battle["battle_id"], ALICE, [])


@pytest.mark.asyncio
async def test_stale_expected_turn_is_a_conflict(machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]
    await machine.submit_turn(GAME, bid, ALICE, [], expected_turn=0)

    with pytest.raises(Conflict):
        await machine.submit_turn(GAME, bid, BOB, [], expected_turn=0)
    assert (await machine.get(GAME, bid))["current_turn"] == 1


@pytest.mark.asyncio
async def test_commit_from_stale_snapshot_is_a_conflict(services, machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]
    battles = services.stores.battles
    turn = {"turn_id": "t1", "device_id": ALICE, "actions": []}

    await battles.append_turn(
        GAME, bid, turn, expected_turn=0, expected_player_index=0, new_state=battle["current_state"]
    )
    with pytest.raises(Conflict):
        await battles.append_turn(
            GAME, bid, dict(turn, turn_id="t2"),
            expected_turn=0, expected_player_index=0, new_state=battle["current_state"],
        )

    turns = await battles.get_turns_since(GAME, bid, 0)
    assert [t["turn_number"] for t in turns] == [1]


@pytest.mark.asyncio
async def test_concurrent_submissions_accept_one_turn(machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]

    results = await asyncio.gather(
        machine.submit_turn(GAME, bid, ALICE, [{"type": "wait"}]),
        machine.submit_turn(GAME, bid, ALICE, [{"type": "wait"}]),
        return_exceptions=True,
    )

    accepted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(accepted) == 1
    assert isinstance(rejected[0], (Conflict, OutOfTurn))
    turns = (await machine.poll(GAME, bid, 0))["new_turns"]
    assert [t["turn_number"] for t in turns] == [1]


@pytest.mark.asyncio
async def test_forfeit_active_battle_awards_opponent(services, machine):
    battle = await active_battle(machine)

    result = await machine.forfeit(GAME, battle["battle_id"], ALICE)

    assert result["status"] == "completed"
    assert result["winner_id"] == BOB
    assert result["end_reason"] == "forfeit"
    alice = await services.stores.identities.get_identity(GAME, ALICE)
    bob = await services.stores.identities.get_identity(GAME, BOB)
    assert (alice["losses"], alice["wins"]) == (1, 0)
    assert (bob["wins"], bob["losses"]) == (1, 0)


@pytest.mark.asyncio
async def test_forfeit_pending_battle_cancels_it(machine):
    battle = await machine.create(GAME, ALICE, MAP_DATA)

    result = await machine.forfeit(GAME, battle["battle_id"], ALICE)

    assert result["status"] == "abandoned"
    assert result["end_reason"] == "cancelled"
    assert result["winner_id"] is None


@pytest.mark.asyncio
async def test_terminal_battles_never_change(machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]
    await machine.forfeit(GAME, bid, BOB)

    with pytest.raises(InvalidState):
        await machine.forfeit(GAME, bid, ALICE)
    with pytest.raises(InvalidState):
        await machine.submit_turn(GAME, bid, ALICE, [])
    with pytest.raises(NotParticipant):
        await machine.forfeit(GAME, bid, CAROL)
    assert (await machine.get(GAME, bid))["winner_id"] == ALICE


@pytest.mark.asyncio
async def test_destroying_last_enemy_unit_wins(services, machine):
    battle = await active_battle(machine)
    bid = battle["battle_id"]
    attack = {
        "type": "attack",
        "unit_id": f"{ALICE}_u0",
        "target_id": f"{BOB}_u1",
        "data": {"damage": 10},
    }

    result, turn = await machine.submit_turn(GAME, bid, ALICE, [attack])

    assert turn["is_valid"] is True
    assert result["status"] == "completed"
    assert result["end_reason"] == "victory"
    assert result["winner_id"] == ALICE
    assert [u["owner"] for u in result["current_state"]["units"]] == [ALICE]
    alice = await services.stores.identities.get_identity(GAME, ALICE)
    assert (alice["wins"], alice["total_turns"], alice["total_battles"]) == (1, 1, 1)


@pytest.mark.asyncio
async def test_draw_claim_ends_battle_for_both(services, machine):
    battle = await active_battle(machine)

    result, _ = await machine.submit_turn(
        GAME, battle["battle_id"], ALICE, [], game_over={"reason": "draw", "winner_id": None}
    )

    assert result["status"] == "completed"
    assert result["end_reason"] == "draw"
    assert result["winner_id"] is None
    for player in (ALICE, BOB):
        assert (await services.stores.identities.get_identity(GAME, player))["draws"] == 1


@pytest.mark.asyncio
async def test_rule_problems_are_recorded_but_turn_is_accepted(machine):
    battle = await active_battle(machine)
    moves = [
        {"type": "move", "unit_id": f"{ALICE}_u0", "to": {"x": 3, "y": 3}},
        {"type": "move", "unit_id": f"{BOB}_u1", "to": {"x": 0, "y": 0}},
        {"type": "move", "unit_id": f"{ALICE}_u0", "to": {"x": 2, "y": 2}},
    ]

    result, turn = await machine.submit_turn(GAME, battle["battle_id"], ALICE, moves)

    assert turn["is_valid"] is False
    assert len(turn["validation_errors"]) == 2
    assert result["current_turn"] == 1
    positions = {u["unit_id"]: (u["x"], u["y"]) for u in result["current_state"]["units"]}
    assert positions == {f"{ALICE}_u0": (2, 2), f"{BOB}_u1": (5, 6)}


@pytest.mark.asyncio
async def test_move_without_coordinates_is_a_note(machine):
    battle = await active_battle(machine)
    unit_id = f"{ALICE}_u0"
    rules = DefaultTurnRules()

    for to in ({}, {"x": 4}, None):
        resolution = rules.resolve(battle, ALICE, [{"type": "move", "unit_id": unit_id, "to": to}])
        assert resolution["validation_errors"] == ["action 0 (move): missing destination"]
        assert resolution["winner_id"] is None
        unit = next(u for u in resolution["state"]["units"] if u["unit_id"] == unit_id)
        assert (unit["x"], unit["y"]) == (1, 2)

    result, turn = await machine.submit_turn(
        GAME, battle["battle_id"], ALICE, [{"type": "move", "unit_id": unit_id, "to": {}}]
    )
    assert turn["is_valid"] is False
    assert result["current_turn"] == 1


@pytest.mark.asyncio
async def test_injected_rules_decide_the_outcome(services):
    class FirstMoveWins:
        def resolve(self, battle, device_id, actions, game_over=None):
            return {
                "state": battle["current_state"],
                "winner_id": device_id,
                "end_reason": "victory",
                "validation_errors": [],
            }

    machine = BattleStateMachine(
        services.stores.battles, services.stores.identities, rules=FirstMoveWins()
    )
    battle = await active_battle(machine)

    result, _ = await machine.submit_turn(GAME, battle["battle_id"], ALICE, [])
    assert (result["status"], result["winner_id"]) == ("completed", ALICE)


@pytest.mark.asyncio
async def test_counter_failure_does_not_undo_transition(services, machine, monkeypatch):
    battle = await active_battle(machine)

    async def broken(*args, **kwargs):
        raise RuntimeError("counter store down")

    monkeypatch.setattr(services.stores.identities, "increment_counters", broken)
    result = await machine.forfeit(GAME, battle["battle_id"], ALICE)

    assert result["status"] == "completed"
    assert (await machine.get(GAME, battle["battle_id"]))["winner_id"] == BOB


@pytest.mark.asyncio
async def test_list_public_hides_private_and_abandoned(machine):
    visible = await machine.create(GAME, ALICE, MAP_DATA)
    await machine.create(GAME, ALICE, MAP_DATA, is_private=True)
    cancelled = await machine.create(GAME, BOB, MAP_DATA)
    await machine.forfeit(GAME, cancelled["battle_id"], BOB)
    joined = await active_battle(machine)

    page = await machine.list_public(GAME, limit=1, caller_device_id=ALICE)

    assert page["total"] == 2
    assert page["counts"] == {"pending": 1, "active": 1, "completed": 0}
    assert [b["battle_id"] for b in page["battles"]] == [joined["battle_id"]]
    assert page["battles"][0]["player2"]["display_name"] == "Bob"
    assert page["my_active_count"] == 3
    assert page["next_cursor"]

    rest = await machine.list_public(GAME, limit=1, cursor=page["next_cursor"])
    assert [b["battle_id"] for b in rest["battles"]] == [visible["battle_id"]]
    assert rest["next_cursor"] is None

    with pytest.raises(ValidationError):
        await machine.list_public(GAME, limit=51)
    with pytest.raises(ValidationError):
        await machine.list_public(GAME, cursor="not-a-cursor")

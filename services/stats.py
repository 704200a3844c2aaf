"""Player statistics and counter reconciliation.

Identity counters are maintained incrementally after each battle commit
and can drift when one of those writes fails. Both functions here derive
the numbers from battle and turn history instead, which is authoritative.
"""
import logging
from collections import defaultdict

from stores import IdentityStore, BattleStore

from .battle_machine import outcome_deltas

logger = logging.getLogger(__name__)


async def player_stats(
    identities: IdentityStore,
    battles: BattleStore,
    game_slug: str,
    device_id: str,
) -> dict:
    # Raises: IdentityNotFound
    identity = await identities.get_identity(game_slug, device_id)
    rows = await battles.outcome_rows(game_slug, device_id)
    turns = await battles.turn_counts(game_slug)

    by_status = defaultdict(int)
    wins = draws = 0
    for r in rows:
        by_status[r["status"]] += 1
        delta = outcome_deltas(r).get(device_id, {})
        wins += delta.get("wins", 0)
        draws += delta.get("draws", 0)
    completed = by_status["completed"]
    losses = completed - wins - draws
    win_rate = f"{wins / completed * 100:.1f}%" if completed else "0.0%"

    return {
        "device_id": device_id,
        "display_name": identity["display_name"],
        "avatar": identity["avatar"],
        "member_since": identity["created_at"],
        "total_battles": len(rows),
        "completed_battles": completed,
        "active_battles": by_status["active"],
        "pending_battles": by_status["pending"],
        "abandoned_battles": by_status["abandoned"],
        "wins": wins,
        "losses": losses,
        "draws": draws,
        "win_rate": win_rate,
        "total_turns_submitted": turns.get(device_id, 0),
        "counters": {
            k: identity[k] for k in ("wins", "losses", "draws", "total_turns", "total_battles")
        },
    }


async def reconcile_counters(identities: IdentityStore, battles: BattleStore, game_slug: str) -> dict:
    """Recompute every identity counter of a game from history and overwrite it.

    Returns {"game_slug", "identities_updated", "battles_scanned"}.
    """
    counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    rows = await battles.outcome_rows(game_slug)
    for r in rows:
        for player in (r["player1_device_id"], r["player2_device_id"]):
            if player:
                counters[player]["total_battles"] += 1
        for player, delta in outcome_deltas(r).items():
            for field, n in delta.items():
                counters[player][field] += n
    for device_id, n in (await battles.turn_counts(game_slug)).items():
        counters[device_id]["total_turns"] += n

    updated = await identities.replace_counters(game_slug, {k: dict(v) for k, v in counters.items()})
    logger.info(f"[STATS] Reconciled {game_slug}: {updated} identities from {len(rows)} battles")
    return {"game_slug": game_slug, "identities_updated": updated, "battles_scanned": len(rows)}

#!/usr/bin/env python3
"""Register a game and, optionally, one device identity for local testing.

Usage:
    seed_game.py <slug> <name> <capabilities> [<device_id> <token> [<display_name>]]

`capabilities` is a comma separated subset of async,data,leaderboard.
"""
import asyncio
import sys
from pathlib import Path

# Add project root to Python path so imports work when run directly
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from services import open_services
from stores import Conflict
from utils.auth import hash_token


async def seed(slug: str, name: str, capabilities: list[str], device: list[str]) -> None:
    async with open_services(config.DB_PATH) as svc:
        identities = svc.stores.identities
        try:
            game = await identities.create_game(slug, name, capabilities)
            print(f"[SEED] ✓ Game {game['slug']} created with {game['capabilities']}")
        except Conflict:
            print(f"[SEED] Game {slug} already exists")
        if device:
            device_id, token = device[0], device[1]
            display_name = device[2] if len(device) > 2 else "Unnamed Player"
            await identities.register_identity(
                slug, device_id, hash_token(token), display_name=display_name
            )
            print(f"[SEED] ✓ Device {device_id} registered in {slug}")


if __name__ == "__main__":
    if len(sys.argv) < 4 or len(sys.argv) == 5:
        print(__doc__, file=sys.stderr)
        sys.exit(2)
    caps = [c.strip() for c in sys.argv[3].split(",") if c.strip()]
    asyncio.run(seed(sys.argv[1], sys.argv[2], caps, sys.argv[4:]))

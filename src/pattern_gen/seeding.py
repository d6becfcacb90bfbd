# ABOUTME: Derives generation seeds and turns them into local pseudo-random generators.
# ABOUTME: Keeps stage generation reproducible without touching ambient randomness.

import hashlib
import random
import time
from typing import Optional


def derive_seed(stage: int, player_id: str, now_ms: Optional[int] = None) -> str:
    """Seed used when the caller does not supply one."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{player_id}-{stage}-{now_ms}"


def seed_to_int(seed: str) -> int:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def seeded_rng(seed: str) -> random.Random:
    return random.Random(seed_to_int(seed))

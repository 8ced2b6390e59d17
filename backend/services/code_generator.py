import random
from typing import Container, Optional


# No 0/O and no 1/I/L: codes are read aloud and typed on phones.
ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def generate_room_code(
    taken: Container[str],
    length: int = 4,
    rng: Optional[random.Random] = None,
    taken_count: Optional[int] = None,
) -> str:
    """
    Draw codes uniformly until one is not in `taken`.

    `taken_count` (when given) lets us fail fast once every code is in use
    instead of resampling forever.
    """
    rng = rng or random.Random()
    if taken_count is not None and taken_count >= len(ROOM_CODE_ALPHABET) ** length:
        raise RuntimeError("No free room codes left")
    while True:
        code = "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))
        if code not in taken:
            return code


def normalize_room_code(raw: str) -> str:
    return raw.strip().upper()

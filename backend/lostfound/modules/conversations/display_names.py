from __future__ import annotations

import random

ADJECTIVES = ("Swift", "Bright", "Kind", "Smart", "Brave", "Wise", "Gentle", "Strong")
NOUNS = ("Helper", "Finder", "Owner", "Student", "Member", "Friend", "Guardian", "Hero")


def make_rng(seed: int | None = None) -> random.Random:
    return random.Random(seed)


def generate_display_name(role: str, rng: random.Random) -> str:
    """Pseudo-anonymous name for matched chats, e.g. ``BraveHelperO``.

    Adjective + noun + role initial. Pass a seeded ``rng`` for reproducible names.
    """
    adjective = rng.choice(ADJECTIVES)
    noun = rng.choice(NOUNS)
    return f"{adjective}{noun}{(role or 'x')[0].upper()}"

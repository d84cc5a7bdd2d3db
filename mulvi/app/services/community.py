"""Simulated community presence for the dashboard.

Display decoration only: the numbers are random and never reach a
UserContext or a compiled prompt.
"""
import random
from typing import Dict, Optional, Union

ACTIVITY_LINES = (
    "Someone just completed their prayer",
    "A new member joined the community",
    "Someone reached a 7-day streak",
    "Someone is reading Quran right now",
)


def community_presence(rng: Optional[random.Random] = None) -> Dict[str, Union[int, str, bool]]:
    rng = rng or random.Random()
    return {
        "simulated": True,
        "praying_now": rng.randint(80, 249),
        "activity": rng.choice(ACTIVITY_LINES),
    }

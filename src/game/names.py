"""Display names for the synthetic opponent."""

import random
from typing import Optional

FIRST_NAMES = (
    "Alex", "Emma", "Marcus", "Sarah", "David", "Lisa", "Michael", "Anna",
    "James", "Sophie", "Robert", "Maria", "John", "Elena", "William", "Kate",
    "Daniel", "Amy", "Thomas", "Grace", "Ryan", "Olivia", "Kevin", "Hannah",
)

LAST_NAMES = (
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Wilson", "Anderson", "Taylor", "Moore", "Jackson", "Martin", "Lee", "Thompson",
    "White", "Harris", "Clark", "Lewis", "Walker", "Young", "Allen", "King",
)


def random_opponent_label(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"

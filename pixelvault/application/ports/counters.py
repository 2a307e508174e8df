from dataclasses import dataclass


@dataclass
class CounterUpdate:
    value: int
    clamped: bool = False


# Attempts for a counter UPDATE that races with other writers before giving up
MAX_COUNTER_ATTEMPTS = 3

import random
from typing import Iterable, List, Optional

# Seed prompts the liveness monitor turns into tasks
DEFAULT_PROMPTS = [
    "What is 2+2?",
    "Name the largest planet in the solar system.",
    "What is the capital of France?",
    "Spell the word 'necessary' backwards.",
    "How many sides does a hexagon have?",
    "What is the boiling point of water in Celsius at sea level?",
    "Give a synonym for 'quick'.",
    "What is 12 multiplied by 12?",
    "Which element has the chemical symbol O?",
    "How many minutes are in three hours?",
]


class PromptPool:
    """Finite set of prompts drawn at random without replacement.

    Not thread-safe on its own; the entity store calls it under its lock.
    """

    def __init__(self, prompts: Optional[Iterable[str]] = None, rng: Optional[random.Random] = None):
        self._remaining: List[str] = [p for p in (DEFAULT_PROMPTS if prompts is None else prompts) if p]
        self._rng = rng or random.Random()

    def draw(self) -> Optional[str]:
        """Remove and return a random prompt, or None once the pool is empty"""
        if not self._remaining:
            return None
        index = self._rng.randrange(len(self._remaining))
        # Swap-remove; order of the rest does not matter
        self._remaining[index], self._remaining[-1] = self._remaining[-1], self._remaining[index]
        return self._remaining.pop()

    def __len__(self) -> int:
        return len(self._remaining)

    @property
    def exhausted(self) -> bool:
        return not self._remaining

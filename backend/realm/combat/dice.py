"""
骰子系统

All randomness in the engine flows through a DiceRoller so that tests can
substitute a scripted sequence of rolls.
"""
import random
from typing import Optional


class DiceRoller:
    """骰子投掷器"""

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None) -> None:
        self._rng = rng or random.Random(seed)

    def roll(self, low: int, high: int) -> int:
        """
        Uniform integer in [low, high] (inclusive).

        A reversed range is normalised rather than rejected, so a monster
        configured with gold_drop_min > gold_drop_max still rolls.
        """
        if high < low:
            low, high = high, low
        return self._rng.randint(low, high)

    def percent(self) -> int:
        """投掷 d100 (1-100)"""
        return self.roll(1, 100)

    def chance(self, percent: float) -> bool:
        """True when a d100 roll is <= percent."""
        return self.percent() <= percent

    def weighted_choice(self, options, weights):
        """Pick one option by integer weight. Returns None for empty input."""
        options = list(options)
        weights = [max(0, int(w)) for w in weights]
        total = sum(weights)
        if not options or total <= 0:
            return None
        pick = self.roll(1, total)
        running = 0
        for option, weight in zip(options, weights):
            running += weight
            if pick <= running:
                return option
        return options[-1]

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

NUMBER_MIN = 100
NUMBER_MAX = 999


@dataclass(frozen=True)
class RoundConfig:
    number_count: int
    display_time_seconds: int
    option_count: int

    def __post_init__(self):
        span = NUMBER_MAX - NUMBER_MIN + 1
        if not 1 <= self.number_count < span:
            raise ValueError(f"number_count must be between 1 and {span - 1}")
        if self.option_count < 1:
            raise ValueError("option_count must be at least 1")
        # Room for the fake among the options
        if self.option_count > self.number_count + 1:
            raise ValueError("option_count cannot exceed number_count + 1")
        if self.display_time_seconds < 0:
            raise ValueError("display_time_seconds cannot be negative")

    def to_dict(self):
        return {
            'number_count': self.number_count,
            'display_time_seconds': self.display_time_seconds,
            'option_count': self.option_count,
        }


@dataclass(frozen=True)
class RoundData:
    shown_numbers: List[int]
    fake_number: int
    selection_options: List[int]


class RoundSchedule:
    """Per-round configuration table, indexed by 1-based round number."""

    def __init__(self, configs: Sequence[RoundConfig]):
        if not configs:
            raise ValueError("at least one round is required")
        self._configs = list(configs)

    @classmethod
    def uniform(cls, total_rounds: int, number_count: int, display_time_seconds: int, option_count: int):
        cfg = RoundConfig(number_count, display_time_seconds, option_count)
        return cls([cfg] * total_rounds)

    @classmethod
    def from_table(cls, table):
        return cls([RoundConfig(int(row['number_count']), int(row['display_time_seconds']), int(row['option_count']))
                    for row in table])

    @property
    def total_rounds(self) -> int:
        return len(self._configs)

    def for_round(self, round_number: int) -> RoundConfig:
        # Out-of-range rounds fall back to the first entry
        if 1 <= round_number <= len(self._configs):
            return self._configs[round_number - 1]
        return self._configs[0]


def _draw(rng: random.Random) -> int:
    return rng.randint(NUMBER_MIN, NUMBER_MAX)


def generate_numbers(count: int, rng: random.Random) -> List[int]:
    """Draw `count` distinct three-digit numbers, keeping draw order."""
    seen = set()
    numbers = []
    while len(numbers) < count:
        num = _draw(rng)
        if num not in seen:
            seen.add(num)
            numbers.append(num)
    return numbers


def generate_fake_number(shown_numbers: Sequence[int], rng: random.Random) -> int:
    shown = set(shown_numbers)
    while True:
        candidate = _draw(rng)
        if candidate not in shown:
            return candidate


def create_selection_options(shown_numbers: Sequence[int], fake_number: int, option_count: int,
                             rng: random.Random) -> List[int]:
    """Pick option_count - 1 real numbers plus the fake, in random order."""
    options = rng.sample(list(shown_numbers), option_count - 1)
    options.append(fake_number)
    rng.shuffle(options)
    return options


def generate_round(config: RoundConfig, rng: Optional[random.Random] = None) -> RoundData:
    rng = rng or random.SystemRandom()
    shown = generate_numbers(config.number_count, rng)
    fake = generate_fake_number(shown, rng)
    options = create_selection_options(shown, fake, config.option_count, rng)
    return RoundData(shown_numbers=shown, fake_number=fake, selection_options=options)

"""In-memory records mutated by the session engine."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PlayerRecord:
    player_id: str
    sessions_in_cooldown_window: int = 0
    last_played_at: Optional[datetime] = None
    cooldown_ends_at: Optional[datetime] = None
    total_tokens: int = 0
    perfect_session_count: int = 0
    current_streak: int = 0
    last_streak_date: Optional[date] = None


@dataclass
class GameSession:
    session_id: str
    player_id: str
    round: int
    shown_numbers: List[int]
    fake_number: int
    selection_options: List[int]
    round_nonce: str
    started_at: datetime
    round_started_at: datetime
    display_time_seconds: int

    tokens_earned: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    completed: bool = False
    completed_at: Optional[datetime] = None
    total_time_seconds: Optional[int] = None

    # Round history, one entry per submitted answer
    answers: List[dict] = field(default_factory=list)

    @property
    def last_activity_at(self) -> datetime:
        return self.completed_at or self.round_started_at

    @property
    def was_perfect(self) -> bool:
        return self.completed and self.wrong_count == 0

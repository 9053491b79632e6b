import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .errors import RateLimited
from .state import PlayerRecord, utcnow
from .stores import PlayerStore

logger = logging.getLogger(__name__)


def format_remaining(ms: int) -> str:
    """Format milliseconds as HH:MM:SS."""
    if ms <= 0:
        return '00:00:00'
    total_seconds = ms // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class CooldownStatus:
    allowed: bool
    cooldown_ends_at: Optional[datetime] = None
    remaining_ms: int = 0

    @property
    def formatted(self) -> str:
        return format_remaining(self.remaining_ms)


class CooldownGate:
    """Per-player rate limiter: a bounded number of starts per cooldown window.

    Windows expire lazily: the first caller that observes
    now >= cooldown_ends_at resets the attempt counter.
    """

    def __init__(self, players: PlayerStore, cooldown: timedelta, max_sessions: int = 1,
                 clock: Callable[[], datetime] = utcnow):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.players = players
        self.cooldown = cooldown
        self.max_sessions = max_sessions
        self.clock = clock

    def _expire_if_due(self, player: PlayerRecord, now: datetime) -> None:
        if player.cooldown_ends_at is not None and now >= player.cooldown_ends_at:
            logger.info(f"[cooldown-reset] player={player.player_id} ended_at={player.cooldown_ends_at.isoformat()}")
            player.sessions_in_cooldown_window = 0
            player.cooldown_ends_at = None

    def _remaining_ms(self, player: PlayerRecord, now: datetime) -> int:
        if player.cooldown_ends_at is None:
            return 0
        remaining = (player.cooldown_ends_at - now).total_seconds() * 1000
        return int(remaining) if remaining > 0 else 0

    def can_start(self, player_id: str) -> CooldownStatus:
        now = self.clock()
        with self.players.locked(player_id):
            player = self.players.get_or_create(player_id)
            self._expire_if_due(player, now)
            if player.sessions_in_cooldown_window >= self.max_sessions:
                return CooldownStatus(False, player.cooldown_ends_at, self._remaining_ms(player, now))
            return CooldownStatus(True, player.cooldown_ends_at, self._remaining_ms(player, now))

    def engage(self, player_id: str) -> datetime:
        now = self.clock()
        with self.players.locked(player_id):
            player = self.players.get_or_create(player_id)
            self._expire_if_due(player, now)
            player.sessions_in_cooldown_window += 1
            player.last_played_at = now
            player.cooldown_ends_at = now + self.cooldown
            return player.cooldown_ends_at

    def reserve(self, player_id: str) -> datetime:
        """Atomically check and engage. Raises RateLimited when blocked."""
        with self.players.locked(player_id):
            status = self.can_start(player_id)
            if not status.allowed:
                raise RateLimited(status.cooldown_ends_at, status.remaining_ms, status.formatted)
            return self.engage(player_id)

    def sessions_remaining(self, player_id: str) -> int:
        with self.players.locked(player_id):
            player = self.players.get_or_create(player_id)
            return max(0, self.max_sessions - player.sessions_in_cooldown_window)

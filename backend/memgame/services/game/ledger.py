import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Dict, List, Protocol, Tuple

from sqlalchemy.exc import IntegrityError

from .errors import StorageUnavailable
from .stores import PlayerStore

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    """Durable per-player token counter."""

    def get(self, player_id: str) -> int: ...

    def increment(self, player_id: str, amount: int) -> int: ...

    def top(self, limit: int) -> List[Tuple[str, int]]: ...


class InMemoryCounterStore:
    def __init__(self):
        self._totals: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, player_id: str) -> int:
        with self._lock:
            return self._totals.get(player_id, 0)

    def increment(self, player_id: str, amount: int) -> int:
        with self._lock:
            self._totals[player_id] = self._totals.get(player_id, 0) + amount
            return self._totals[player_id]

    def top(self, limit: int) -> List[Tuple[str, int]]:
        with self._lock:
            ranked = sorted(self._totals.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit]


class SqlCounterStore:
    """Counter store backed by the player_tokens table.

    Calls may run on worker threads, so each one opens its own app context.
    """

    def __init__(self, app):
        self.app = app

    def get(self, player_id: str) -> int:
        from memgame import db
        from memgame.models import PlayerTokens
        with self.app.app_context():
            row = db.session.get(PlayerTokens, player_id)
            return row.total_tokens if row else 0

    def increment(self, player_id: str, amount: int) -> int:
        from memgame import db
        from memgame.models import PlayerTokens
        with self.app.app_context():
            for attempt in range(2):
                try:
                    row = db.session.get(PlayerTokens, player_id, with_for_update=True)
                    if row is None:
                        row = PlayerTokens(player_id=player_id, total_tokens=0)
                        db.session.add(row)
                    row.total_tokens = (row.total_tokens or 0) + amount
                    db.session.commit()
                    return row.total_tokens
                except IntegrityError:
                    # Lost the race to insert the first row; retry as an update
                    db.session.rollback()
                    if attempt:
                        raise
                    logger.info(f"[ledger-store-retry] player={player_id}")
                except Exception:
                    db.session.rollback()
                    raise

    def top(self, limit: int) -> List[Tuple[str, int]]:
        from memgame.models import PlayerTokens
        with self.app.app_context():
            rows = (PlayerTokens.query
                    .order_by(PlayerTokens.total_tokens.desc(), PlayerTokens.player_id)
                    .limit(limit)
                    .all())
            return [(r.player_id, r.total_tokens) for r in rows]


class TokenLedger:
    """Accumulates rewards per player, capped per period (one game session).

    The in-memory total is authoritative for gameplay. Every credit is
    mirrored to the durable store with a bounded wait; store failures are
    logged and otherwise ignored.
    """

    def __init__(self, players: PlayerStore, store: CounterStore, period_cap: int,
                 store_timeout: float = 2.0, max_workers: int = 4):
        if period_cap < 0:
            raise ValueError("period_cap cannot be negative")
        self.players = players
        self.store = store
        self.period_cap = period_cap
        self.store_timeout = store_timeout
        self._periods: Dict[Tuple[str, str], int] = {}
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='ledger-store')

    def _call_store(self, fn, *args):
        try:
            future = self._executor.submit(fn, *args)
            return future.result(timeout=self.store_timeout)
        except FutureTimeout as exc:
            raise StorageUnavailable(f"store call timed out after {self.store_timeout}s") from exc
        except Exception as exc:
            raise StorageUnavailable(str(exc)) from exc

    def credited_in_period(self, player_id: str, period: str) -> int:
        with self.players.locked(player_id):
            return self._periods.get((player_id, period), 0)

    def credit_player(self, player_id: str, amount: int, period: str) -> int:
        """Credit up to `amount` tokens; returns what was actually credited."""
        with self.players.locked(player_id):
            already = self._periods.get((player_id, period), 0)
            credited = max(0, min(amount, self.period_cap - already))
            if credited == 0:
                return 0
            self._periods[(player_id, period)] = already + credited
            player = self.players.get_or_create(player_id)
            player.total_tokens += credited
        try:
            self._call_store(self.store.increment, player_id, credited)
        except StorageUnavailable as exc:
            logger.warning(f"[ledger-store-fail] op=increment player={player_id} amount={credited} err={exc}")
        return credited

    def balance(self, player_id: str) -> int:
        player = self.players.get(player_id)
        in_memory = player.total_tokens if player else 0
        try:
            durable = self._call_store(self.store.get, player_id)
        except StorageUnavailable as exc:
            logger.warning(f"[ledger-store-fail] op=get player={player_id} err={exc}")
            return in_memory
        return max(durable, in_memory)

    def leaderboard(self, limit: int = 10) -> List[Tuple[str, int]]:
        try:
            return list(self._call_store(self.store.top, limit))
        except StorageUnavailable as exc:
            logger.warning(f"[ledger-store-fail] op=top err={exc}")
            return []

    def close_period(self, player_id: str, period: str) -> None:
        with self.players.locked(player_id):
            self._periods.pop((player_id, period), None)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

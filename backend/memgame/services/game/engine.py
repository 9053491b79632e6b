import logging
import random
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from .cooldown import CooldownGate, CooldownStatus
from .ledger import CounterStore, InMemoryCounterStore, SqlCounterStore, TokenLedger
from .rounds import RoundSchedule
from .sessions import SessionStateMachine, generate_token
from .state import PlayerRecord, utcnow
from .stores import PlayerStore, SessionStore

logger = logging.getLogger(__name__)


def build_schedule(config) -> RoundSchedule:
    table = config.get('ROUND_TABLE')
    if table:
        return RoundSchedule.from_table(table)
    return RoundSchedule.uniform(
        total_rounds=int(config.get('TOTAL_ROUNDS', 3)),
        number_count=int(config.get('ROUND_NUMBER_COUNT', 6)),
        display_time_seconds=int(config.get('ROUND_DISPLAY_TIME_SEC', 10)),
        option_count=int(config.get('ROUND_OPTION_COUNT', 3)),
    )


class GameEngine:
    """Owns the stores and services for one app; created at app start,
    torn down by shutdown().

    Usable as a Flask extension: `GameEngine(app)` builds the services
    from app.config and registers itself under app.extensions['memgame'].
    Build one engine per app; calling init_app again replaces its state.
    Tests may pass `clock`, `rng` and `counter_store` to init_app.
    """

    def __init__(self, app=None, **kwargs):
        self.players: Optional[PlayerStore] = None
        self.sessions: Optional[SessionStore] = None
        self.gate: Optional[CooldownGate] = None
        self.ledger: Optional[TokenLedger] = None
        self.machine: Optional[SessionStateMachine] = None
        self.clock: Callable[[], datetime] = utcnow
        self.retention = timedelta(seconds=900)
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if app is not None:
            self.init_app(app, **kwargs)

    def init_app(self, app, clock: Optional[Callable[[], datetime]] = None,
                 rng: Optional[random.Random] = None,
                 counter_store: Optional[CounterStore] = None,
                 token_factory: Callable[[], str] = generate_token):
        cfg = app.config
        self.shutdown()
        self._stop = threading.Event()
        self.clock = clock or utcnow
        self.retention = timedelta(seconds=int(cfg.get('SESSION_RETENTION_SEC', 900)))

        if counter_store is None:
            if cfg.get('SQLALCHEMY_DATABASE_URI'):
                counter_store = SqlCounterStore(app)
            else:
                counter_store = InMemoryCounterStore()

        self.players = PlayerStore()
        self.sessions = SessionStore()
        self.gate = CooldownGate(
            self.players,
            cooldown=timedelta(minutes=float(cfg.get('COOLDOWN_MINUTES', 360))),
            max_sessions=int(cfg.get('MAX_SESSIONS_PER_COOLDOWN', 1)),
            clock=self.clock,
        )
        self.ledger = TokenLedger(
            self.players,
            counter_store,
            period_cap=int(cfg.get('MAX_TOKENS_PER_SESSION', 30)),
            store_timeout=float(cfg.get('TOKEN_STORE_TIMEOUT_SEC', 2)),
        )
        self.machine = SessionStateMachine(
            build_schedule(cfg),
            self.players,
            self.sessions,
            self.gate,
            self.ledger,
            tokens_per_correct=int(cfg.get('TOKENS_PER_CORRECT', 10)),
            rng=rng,
            clock=self.clock,
            token_factory=token_factory,
        )
        app.extensions['memgame'] = self
        self._start_sweeper(app)
        return self

    def player_stats(self, player_id: str) -> dict:
        # Public read: unknown players get a default view and leave no record behind
        player = self.players.get(player_id)
        if player is None:
            player = PlayerRecord(player_id=player_id)
            status = CooldownStatus(allowed=True)
        else:
            status = self.gate.can_start(player_id)
        return {
            'can_play': status.allowed,
            'cooldown_ends_at': status.cooldown_ends_at.isoformat() if status.cooldown_ends_at else None,
            'cooldown_remaining_ms': status.remaining_ms,
            'cooldown_formatted': status.formatted,
            'sessions_used': player.sessions_in_cooldown_window,
            'total_tokens': self.ledger.balance(player_id),
            'perfect_session_count': player.perfect_session_count,
            'current_streak': player.current_streak,
        }

    def sweep_sessions(self) -> int:
        """Drop sessions idle longer than the retention window."""
        cutoff = self.clock() - self.retention
        removed = self.sessions.sweep(cutoff)
        for session in removed:
            self.ledger.close_period(session.player_id, session.session_id)
        if removed:
            logger.info(f"[sweep] removed={len(removed)} cutoff={cutoff.isoformat()}")
        return len(removed)

    def _start_sweeper(self, app) -> None:
        # No background threads under TESTING unless opted in
        if app.config.get('TESTING') and not app.config.get('ENABLE_SWEEPER_IN_TESTS'):
            return
        interval = float(app.config.get('SESSION_SWEEP_INTERVAL_SEC', 60))
        if interval <= 0:
            return
        stop = self._stop

        def _worker():
            while not stop.wait(interval):
                try:
                    self.sweep_sessions()
                except Exception as exc:
                    logger.exception(f"[sweep-error] {exc}")

        self._sweeper = threading.Thread(target=_worker, name='session-sweeper', daemon=True)
        self._sweeper.start()
        logger.info(f"[sweep-start] interval={interval}s retention={int(self.retention.total_seconds())}s")

    def shutdown(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None
        if self.ledger is not None:
            self.ledger.shutdown()
        if self.sessions is not None:
            self.sessions.clear()
        if self.players is not None:
            self.players.clear()

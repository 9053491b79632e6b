"""Server-authoritative session/round state machine.

A session moves AWAITING_START -> ROUND_ACTIVE(1) -> ... -> SESSION_COMPLETE.
Wrong answers forfeit that round's reward but play continues through every
round. Sessions are never deleted here; the engine's sweep removes them.
"""

import logging
import random
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union

from .cooldown import CooldownGate
from .errors import AlreadyCompleted, Forbidden, InvalidNonce, NotFound
from .ledger import TokenLedger
from .rounds import RoundSchedule, generate_round
from .state import GameSession, utcnow
from .stores import PlayerStore, SessionStore
from .streaks import next_streak

logger = logging.getLogger(__name__)

AWAITING_START = 'awaiting_start'
ROUND_ACTIVE = 'round_active'
SESSION_COMPLETE = 'session_complete'


def generate_token() -> str:
    return secrets.token_hex(16)


def _nonce_matches(nonce, session: GameSession) -> bool:
    return secrets.compare_digest(str(nonce).encode(), session.round_nonce.encode())


@dataclass(frozen=True)
class RoundView:
    round: int
    shown_numbers: List[int]
    display_time_ms: int
    round_nonce: str

    def to_dict(self):
        return {
            'round': self.round,
            'shown_numbers': list(self.shown_numbers),
            'display_time_ms': self.display_time_ms,
            'round_nonce': self.round_nonce,
        }


@dataclass(frozen=True)
class StartResult:
    session_id: str
    round_view: RoundView
    sessions_remaining: int

    def to_dict(self):
        payload = {'session_id': self.session_id}
        payload.update(self.round_view.to_dict())
        payload['sessions_remaining'] = self.sessions_remaining
        return payload


@dataclass(frozen=True)
class RoundResult:
    correct: bool
    tokens_awarded: int
    next_round: RoundView
    session_complete: bool = False

    def to_dict(self):
        return {
            'correct': self.correct,
            'message': 'CONNECTION SECURED' if self.correct else 'WRONG NODE - CONTINUE',
            'tokens_awarded': self.tokens_awarded,
            'session_complete': False,
            'next_round': self.next_round.to_dict(),
        }


@dataclass(frozen=True)
class SessionSummary:
    correct: bool
    tokens_awarded: int
    tokens_earned: int
    correct_count: int
    wrong_count: int
    total_time_seconds: int
    was_perfect: bool
    session_complete: bool = True

    def to_dict(self):
        return {
            'correct': self.correct,
            'message': 'CONNECTION FULLY SECURED' if self.was_perfect else 'SESSION COMPLETE',
            'tokens_awarded': self.tokens_awarded,
            'session_complete': True,
            'tokens_earned': self.tokens_earned,
            'correct_count': self.correct_count,
            'wrong_count': self.wrong_count,
            'total_time_seconds': self.total_time_seconds,
            'was_perfect': self.was_perfect,
        }


SubmitResult = Union[RoundResult, SessionSummary]


def session_state(session: Optional[GameSession]) -> str:
    if session is None:
        return AWAITING_START
    if session.completed:
        return SESSION_COMPLETE
    return ROUND_ACTIVE


class SessionStateMachine:
    def __init__(self, schedule: RoundSchedule, players: PlayerStore, sessions: SessionStore,
                 gate: CooldownGate, ledger: TokenLedger, tokens_per_correct: int,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], datetime] = utcnow,
                 token_factory: Callable[[], str] = generate_token):
        self.schedule = schedule
        self.players = players
        self.sessions = sessions
        self.gate = gate
        self.ledger = ledger
        self.tokens_per_correct = tokens_per_correct
        self.rng = rng or random.SystemRandom()
        self.clock = clock
        self.token_factory = token_factory

    def _round_view(self, session: GameSession) -> RoundView:
        return RoundView(
            round=session.round,
            shown_numbers=list(session.shown_numbers),
            display_time_ms=session.display_time_seconds * 1000,
            round_nonce=session.round_nonce,
        )

    def _new_session_id(self) -> str:
        while True:
            candidate = self.token_factory()
            if self.sessions.get(candidate) is None:
                return candidate

    def start_session(self, player_id: str) -> StartResult:
        # Player lock spans check, generation and engage so two concurrent
        # starts cannot both pass the gate
        with self.players.locked(player_id):
            self.gate.reserve(player_id)
            config = self.schedule.for_round(1)
            data = generate_round(config, self.rng)
            now = self.clock()
            session = GameSession(
                session_id=self._new_session_id(),
                player_id=player_id,
                round=1,
                shown_numbers=data.shown_numbers,
                fake_number=data.fake_number,
                selection_options=data.selection_options,
                round_nonce=self.token_factory(),
                started_at=now,
                round_started_at=now,
                display_time_seconds=config.display_time_seconds,
            )
            self.sessions.add(session)
            remaining = self.gate.sessions_remaining(player_id)
        logger.info(f"[session-start] player={player_id} session={session.session_id} "
                    f"rounds={self.schedule.total_rounds}")
        return StartResult(session.session_id, self._round_view(session), remaining)

    def fetch_options(self, session_id: str, nonce: str):
        with self.sessions.checked_out(session_id) as session:
            if session is None:
                raise NotFound()
            if not _nonce_matches(nonce, session):
                raise InvalidNonce()
            return list(session.selection_options), session.round

    def submit_answer(self, session_id: str, player_id: str, chosen_number: int, nonce: str) -> SubmitResult:
        with self.sessions.checked_out(session_id) as session:
            if session is None:
                raise NotFound()
            if session.player_id != player_id:
                raise Forbidden()
            if not _nonce_matches(nonce, session):
                raise InvalidNonce()
            if session.completed:
                raise AlreadyCompleted()

            now = self.clock()
            is_correct = chosen_number == session.fake_number
            awarded = 0
            if is_correct:
                awarded = self.ledger.credit_player(player_id, self.tokens_per_correct, period=session.session_id)
                session.correct_count += 1
                session.tokens_earned += awarded
            else:
                session.wrong_count += 1
            session.answers.append({
                'round': session.round,
                'chosen_number': chosen_number,
                'correct': is_correct,
                'tokens_awarded': awarded,
                'answered_at': now.isoformat(),
            })

            if session.round >= self.schedule.total_rounds:
                return self._complete(session, is_correct, awarded, now)
            self._advance(session, now)
            return RoundResult(is_correct, awarded, self._round_view(session))

    def _advance(self, session: GameSession, now: datetime) -> None:
        prev_round = session.round
        config = self.schedule.for_round(prev_round + 1)
        data = generate_round(config, self.rng)
        session.round = prev_round + 1
        session.shown_numbers = data.shown_numbers
        session.fake_number = data.fake_number
        session.selection_options = data.selection_options
        session.round_nonce = self.token_factory()
        session.round_started_at = now
        session.display_time_seconds = config.display_time_seconds
        logger.info(f"[round-advance] session={session.session_id} round {prev_round} -> {session.round}")

    def _complete(self, session: GameSession, is_correct: bool, awarded: int, now: datetime) -> SessionSummary:
        session.completed = True
        session.completed_at = now
        session.total_time_seconds = max(0, int((now - session.started_at).total_seconds()))
        perfect = session.wrong_count == 0

        with self.players.locked(session.player_id):
            player = self.players.get_or_create(session.player_id)
            if perfect:
                player.perfect_session_count += 1
            today = now.date()
            player.current_streak = next_streak(today, player.last_streak_date, player.current_streak)
            player.last_streak_date = today

        logger.info(
            f"[session-complete] session={session.session_id} player={session.player_id} "
            f"correct={session.correct_count} wrong={session.wrong_count} tokens={session.tokens_earned} "
            f"time={session.total_time_seconds}s perfect={perfect}"
        )
        return SessionSummary(
            correct=is_correct,
            tokens_awarded=awarded,
            tokens_earned=session.tokens_earned,
            correct_count=session.correct_count,
            wrong_count=session.wrong_count,
            total_time_seconds=session.total_time_seconds,
            was_perfect=perfect,
        )

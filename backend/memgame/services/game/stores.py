"""Process-wide keyed stores for players and sessions.

Each store owns its own synchronization: a guard lock protects the maps and
a reentrant lock per key serializes work on one player or one session.
Stores are created by the engine at app start and cleared on shutdown.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Hashable, List, Optional

from .state import GameSession, PlayerRecord


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = {}

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self):
        with self._guard:
            return len(self._locks)

    def discard(self, key: Hashable) -> None:
        with self._guard:
            self._locks.pop(key, None)

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()


class PlayerStore:
    def __init__(self):
        self._players: Dict[str, PlayerRecord] = {}
        self._guard = threading.Lock()
        self._locks = KeyedLocks()

    def locked(self, player_id: str):
        return self._locks.hold(player_id)

    def get_or_create(self, player_id: str) -> PlayerRecord:
        with self._guard:
            player = self._players.get(player_id)
            if player is None:
                player = PlayerRecord(player_id=player_id)
                self._players[player_id] = player
            return player

    def get(self, player_id: str) -> Optional[PlayerRecord]:
        with self._guard:
            return self._players.get(player_id)

    def __len__(self):
        with self._guard:
            return len(self._players)

    def lock_count(self) -> int:
        return len(self._locks)

    def clear(self) -> None:
        with self._guard:
            self._players.clear()
        self._locks.clear()


class SessionStore:
    def __init__(self):
        self._sessions: Dict[str, GameSession] = {}
        self._guard = threading.Lock()
        self._locks = KeyedLocks()

    def locked(self, session_id: str):
        return self._locks.hold(session_id)

    @contextmanager
    def checked_out(self, session_id: str):
        """Yield the session while holding its lock, or None for unknown ids.

        Unknown ids never get a lock entry.
        """
        if self.get(session_id) is None:
            yield None
            return
        with self.locked(session_id):
            session = self.get(session_id)
            if session is None:
                # Swept while we waited
                self._locks.discard(session_id)
            yield session

    def add(self, session: GameSession) -> None:
        with self._guard:
            if session.session_id in self._sessions:
                raise KeyError(f"duplicate session id {session.session_id}")
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Optional[GameSession]:
        with self._guard:
            return self._sessions.get(session_id)

    def __len__(self):
        with self._guard:
            return len(self._sessions)

    def lock_count(self) -> int:
        return len(self._locks)

    def sweep(self, older_than: datetime) -> List[GameSession]:
        """Remove sessions whose last activity is before `older_than`."""
        with self._guard:
            stale_ids = [sid for sid, s in self._sessions.items() if s.last_activity_at < older_than]
        removed = []
        for sid in stale_ids:
            # Wait for any in-flight transition before dropping the record
            with self.locked(sid):
                with self._guard:
                    session = self._sessions.get(sid)
                    if session is None or session.last_activity_at >= older_than:
                        continue
                    del self._sessions[sid]
                removed.append(session)
            self._locks.discard(sid)
        return removed

    def clear(self) -> None:
        with self._guard:
            self._sessions.clear()
        self._locks.clear()

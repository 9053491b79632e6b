from datetime import datetime
from typing import Optional


class GameError(Exception):
    """Base for request-scoped game errors rendered to the client."""

    error_kind = 'GameError'
    status_code = 400
    default_message = 'Request rejected'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self):
        return {'error': self.message, 'code': self.error_kind}


class RateLimited(GameError):
    error_kind = 'RateLimited'
    status_code = 429
    default_message = 'Security system is locked'

    def __init__(self, cooldown_ends_at: Optional[datetime], remaining_ms: int = 0, formatted: str = '00:00:00'):
        super().__init__(f"Security system is locked. Wait {formatted} before next attempt.")
        self.cooldown_ends_at = cooldown_ends_at
        self.remaining_ms = remaining_ms
        self.formatted = formatted

    def to_dict(self):
        payload = super().to_dict()
        payload['cooldown_ends_at'] = self.cooldown_ends_at.isoformat() if self.cooldown_ends_at else None
        payload['cooldown_remaining_ms'] = self.remaining_ms
        payload['cooldown_formatted'] = self.formatted
        return payload


class NotFound(GameError):
    error_kind = 'NotFound'
    status_code = 404
    default_message = 'Session not found'


class Forbidden(GameError):
    error_kind = 'Forbidden'
    status_code = 403
    default_message = 'Session mismatch'


class InvalidNonce(GameError):
    error_kind = 'InvalidNonce'
    status_code = 400
    default_message = 'Invalid nonce'


class AlreadyCompleted(GameError):
    error_kind = 'AlreadyCompleted'
    status_code = 409
    default_message = 'Session already completed'


class StorageUnavailable(Exception):
    """Durable counter store failed or timed out. Never shown to players."""

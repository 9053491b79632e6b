"""Game domain services: round generation, sessions, cooldowns and tokens.

This package holds the core engine. HTTP blueprints import from here and
keep transport concerns (JSON, status codes, identity) out of the game
mechanics.
"""

from .engine import GameEngine
from .errors import (
    AlreadyCompleted,
    Forbidden,
    GameError,
    InvalidNonce,
    NotFound,
    RateLimited,
    StorageUnavailable,
)

__all__ = [
    'GameEngine',
    'GameError',
    'RateLimited',
    'NotFound',
    'Forbidden',
    'InvalidNonce',
    'AlreadyCompleted',
    'StorageUnavailable',
]

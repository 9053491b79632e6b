from datetime import date, timedelta
from typing import Optional


def next_streak(today: date, last_streak_date: Optional[date], current_streak: int) -> int:
    """Daily streak after a completed session on `today` (UTC dates).

    Played yesterday -> streak grows; already counted today -> unchanged;
    anything else starts over at 1.
    """
    if last_streak_date is None:
        return 1
    if last_streak_date == today:
        return current_streak
    if last_streak_date == today - timedelta(days=1):
        return current_streak + 1
    return 1

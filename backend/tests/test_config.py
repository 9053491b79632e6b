import json
import pytest

from config import round_table_from_env
from memgame.services.game.engine import build_schedule

TABLE = [
    {'number_count': 5, 'display_time_seconds': 8, 'option_count': 3},
    {'number_count': 7, 'display_time_seconds': 12, 'option_count': 4},
]


def test_round_table_unset_means_uniform(monkeypatch):
    monkeypatch.delenv('ROUND_TABLE', raising=False)
    assert round_table_from_env() is None
    assert round_table_from_env('  ') is None


def test_round_table_read_from_environment(monkeypatch):
    monkeypatch.setenv('ROUND_TABLE', json.dumps(TABLE))
    table = round_table_from_env()
    assert table == TABLE

    schedule = build_schedule({'ROUND_TABLE': table})
    assert schedule.total_rounds == 2
    assert schedule.for_round(2).number_count == 7
    assert schedule.for_round(2).option_count == 4


def test_round_table_must_be_a_list():
    with pytest.raises(ValueError):
        round_table_from_env('{"number_count": 5}')


def test_uniform_schedule_without_table():
    schedule = build_schedule({'TOTAL_ROUNDS': 4, 'ROUND_NUMBER_COUNT': 6,
                               'ROUND_DISPLAY_TIME_SEC': 10, 'ROUND_OPTION_COUNT': 3})
    assert schedule.total_rounds == 4
    assert schedule.for_round(3).display_time_seconds == 10

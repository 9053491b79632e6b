import logging
import random
import threading
import pytest

from memgame.services.game.ledger import InMemoryCounterStore, TokenLedger
from memgame.services.game.stores import PlayerStore


class FailingStore:
    def get(self, player_id):
        raise ConnectionError('store offline')

    def increment(self, player_id, amount):
        raise ConnectionError('store offline')

    def top(self, limit):
        raise ConnectionError('store offline')


class BlockingStore(InMemoryCounterStore):
    """Hangs on increment until released."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def increment(self, player_id, amount):
        self.release.wait(5)
        return super().increment(player_id, amount)


@pytest.fixture()
def ledger():
    led = TokenLedger(PlayerStore(), InMemoryCounterStore(), period_cap=30, store_timeout=1)
    yield led
    led.shutdown()


def test_credit_within_cap(ledger):
    assert ledger.credit_player('p1', 10, period='s1') == 10
    assert ledger.credit_player('p1', 10, period='s1') == 10
    assert ledger.players.get('p1').total_tokens == 20
    assert ledger.store.get('p1') == 20
    assert ledger.credited_in_period('p1', 's1') == 20


def test_credit_is_clipped_at_cap(ledger):
    assert ledger.credit_player('p1', 25, period='s1') == 25
    assert ledger.credit_player('p1', 25, period='s1') == 5
    assert ledger.credit_player('p1', 25, period='s1') == 0
    assert ledger.players.get('p1').total_tokens == 30
    assert ledger.store.get('p1') == 30


def test_cap_is_per_period(ledger):
    ledger.credit_player('p1', 30, period='s1')
    assert ledger.credit_player('p1', 10, period='s2') == 10
    assert ledger.players.get('p1').total_tokens == 40


def test_zero_and_negative_amounts_credit_nothing(ledger):
    assert ledger.credit_player('p1', 0, period='s1') == 0
    assert ledger.credit_player('p1', -5, period='s1') == 0
    # Nothing credited, so no player record was created
    assert ledger.players.get('p1') is None
    assert ledger.balance('p1') == 0
    assert ledger.players.get('p1') is None


def test_random_credit_sequences_never_exceed_cap():
    rng = random.Random(8)
    for _ in range(50):
        cap = rng.randint(0, 60)
        led = TokenLedger(PlayerStore(), InMemoryCounterStore(), period_cap=cap)
        total = 0
        for _ in range(rng.randint(1, 15)):
            got = led.credit_player('p', rng.randint(-10, 40), period='s')
            assert got >= 0
            total += got
            assert led.credited_in_period('p', 's') <= cap
        assert total == led.credited_in_period('p', 's')
        assert led.players.get_or_create('p').total_tokens == total
        led.shutdown()


def test_store_failure_is_not_fatal(caplog):
    led = TokenLedger(PlayerStore(), FailingStore(), period_cap=30)
    with caplog.at_level(logging.WARNING, logger='memgame.services.game.ledger'):
        assert led.credit_player('p1', 10, period='s1') == 10
    assert led.players.get('p1').total_tokens == 10
    assert any('[ledger-store-fail]' in r.getMessage() for r in caplog.records)
    # Reads fall back to the in-memory view
    assert led.balance('p1') == 10
    assert led.leaderboard() == []
    led.shutdown()


def test_store_timeout_is_bounded(caplog):
    store = BlockingStore()
    led = TokenLedger(PlayerStore(), store, period_cap=30, store_timeout=0.05)
    try:
        with caplog.at_level(logging.WARNING, logger='memgame.services.game.ledger'):
            assert led.credit_player('p1', 10, period='s1') == 10
        assert led.players.get('p1').total_tokens == 10
        assert any('timed out' in r.getMessage() for r in caplog.records)
    finally:
        store.release.set()
        led.shutdown()


def test_balance_prefers_durable_total(ledger):
    ledger.store.increment('p1', 70)
    ledger.credit_player('p1', 10, period='s1')
    assert ledger.balance('p1') == 80
    assert ledger.balance('nobody') == 0


def test_leaderboard_orders_by_total(ledger):
    ledger.credit_player('a', 10, period='s')
    ledger.credit_player('b', 30, period='s')
    ledger.credit_player('c', 20, period='s')
    assert ledger.leaderboard(2) == [('b', 30), ('c', 20)]


def test_close_period_forgets_cap_usage(ledger):
    ledger.credit_player('p1', 30, period='s1')
    ledger.close_period('p1', 's1')
    assert ledger.credited_in_period('p1', 's1') == 0


def test_negative_cap_rejected():
    with pytest.raises(ValueError):
        TokenLedger(PlayerStore(), InMemoryCounterStore(), period_cap=-1)

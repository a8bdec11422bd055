from datetime import timedelta
from decimal import Decimal

import pytest

from db.database import DatabaseConnection
from db.service import DatabaseService
from strategies.convergence_strategy import SignalType, UltraSignal


@pytest.fixture
def service():
    return DatabaseService(run_id="test-run", db=DatabaseConnection("sqlite://"))


def _signal(now, mint="M1", minutes=0):
    return UltraSignal(mint=mint, confidence=0.95, smart_wallets_count=3, avg_smart_score=0.9,
                       total_volume=Decimal("12.345678901234567890"), signal_type=SignalType.SMART_MONEY_CONVERGENCE,
                       detected_at=now + timedelta(minutes=minutes), wallets=("a", "b", "c"))


def test_connection(service):
    assert service.db.test_connection()


def test_signals_saved_and_marked(service, now):
    first = service.save_signal(_signal(now, "A"))
    second = service.save_signal(_signal(now, "B", minutes=5))
    service.mark_signal_executed(first)

    recent = service.get_recent_signals()

    assert [r.mint for r in recent] == ["B", "A"]
    assert [r.id for r in recent] == [second, first]
    assert recent[1].executed is True
    assert recent[0].executed is False
    assert recent[0].total_volume == "12.345678901234567890"
    assert recent[0].wallets == ["a", "b", "c"]
    assert recent[0].run_id == "test-run"


def test_recent_signals_limit(service, now):
    for i in range(5):
        service.save_signal(_signal(now, f"M{i}", minutes=i))

    assert [r.mint for r in service.get_recent_signals(limit=2)] == ["M4", "M3"]


def test_marking_unknown_signal_is_a_noop(service):
    service.mark_signal_executed(12345)
    assert service.get_recent_signals() == []


def test_wallet_analysis_saved(service, make_analysis):
    analysis = make_analysis(wallet="w1", score=0.85)
    analysis.preferred_tokens = ["X", "Y"]

    record_id = service.save_wallet_analysis(analysis)

    assert isinstance(record_id, int)

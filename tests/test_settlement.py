from decimal import Decimal

from game.ledger import BetLedger, ParticipantRegistry
from game.settlement import CRASHED, SettlementEngine


def build(players):
    registry = ParticipantRegistry(Decimal("1000"))
    for connection_id, name in players:
        registry.register(connection_id).name = name
    return registry, BetLedger(registry)


def test_leaderboard_mixes_winners_and_losers():
    registry, ledger = build([("a", "Ann"), ("b", "Ben"), ("c", "Cat")])
    ledger.place("a", Decimal("100"))
    ledger.place("b", Decimal("40"))
    ledger.place("c", Decimal("10"))
    ledger.cash_out("a", Decimal("2.50"))
    ledger.cash_out("c", Decimal("1.20"))

    leaderboard = SettlementEngine(registry).settle(ledger)

    assert [entry.to_dict() for entry in leaderboard] == [
        {"name": "Ann", "result": "2.50x", "money": "250.00"},
        {"name": "Ben", "result": CRASHED, "money": "0.00"},
        {"name": "Cat", "result": "1.20x", "money": "12.00"},
    ]


def test_money_sums_match_cash_outs():
    registry, ledger = build([(f"p{i}", f"P{i}") for i in range(6)])
    multipliers = {"p0": Decimal("1.10"), "p2": Decimal("3.35"), "p5": Decimal("7.00")}
    for i in range(6):
        ledger.place(f"p{i}", Decimal(10 + i))
    for participant_id, multiplier in multipliers.items():
        ledger.cash_out(participant_id, multiplier)

    leaderboard = SettlementEngine(registry).settle(ledger)

    expected = sum(ledger.get(pid).amount * m for pid, m in multipliers.items())
    assert sum(entry.money for entry in leaderboard) == expected
    assert all(entry.money == 0 for entry in leaderboard if entry.result == CRASHED)


def test_settlement_does_not_touch_balances():
    registry, ledger = build([("a", "Ann"), ("b", "Ben")])
    ledger.place("a", Decimal("100"))
    ledger.place("b", Decimal("100"))
    ledger.cash_out("a", Decimal("2"))
    before = {p.connection_id: p.balance for p in registry}

    SettlementEngine(registry).settle(ledger)

    assert {p.connection_id: p.balance for p in registry} == before
    assert before == {"a": Decimal("1100"), "b": Decimal("900")}


def test_empty_ledger_gives_empty_leaderboard():
    registry, ledger = build([])
    assert SettlementEngine(registry).settle(ledger) == []

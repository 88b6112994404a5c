import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models import RejectionReason
from payments_engine import PaymentsEngine
from settings import LedgerSettings


def build_dispute_rows():
    """Disputes, resolves and chargebacks across 60 accounts, grouped by outcome."""
    rows = ["type, client, tx, amount"]

    # Client 1-10: Normal deposits only
    # Expected: 500 each (100 + 150 + 250)
    for client_id in range(1, 11):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 1}, 100")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 2}, 150")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 3}, 250")

    # Client 11-20: Deposit -> Dispute -> Resolve
    for client_id in range(11, 21):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 1}, 100")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 2}, 150")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 3}, 250")
    for client_id in range(11, 21):
        rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")
    for client_id in range(11, 21):
        rows.append(f"resolve, {client_id}, {client_id * 100 + 1},")

    # Client 21-30: Deposit -> Dispute -> Chargeback, then a rejected deposit
    for client_id in range(21, 31):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 1}, 100")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 2}, 150")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 3}, 250")
    for client_id in range(21, 31):
        rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")
    for client_id in range(21, 31):
        rows.append(f"chargeback, {client_id}, {client_id * 100 + 1},")
    for client_id in range(21, 31):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 4}, 1000")

    # Client 31-40: Deposit -> Withdrawal -> Dispute (on deposit)
    # available = 150 + 250 - 100 - 150 held
    for client_id in range(31, 41):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 1}, 150")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 2}, 250")
        rows.append(f"withdrawal, {client_id}, {client_id * 100 + 3}, 100")
    for client_id in range(31, 41):
        rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")

    # Client 41-50: Multiple deposits, dispute middle one, resolve
    for client_id in range(41, 51):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 1}, 100")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 2}, 200")
        rows.append(f"deposit, {client_id}, {client_id * 100 + 3}, 300")
    for client_id in range(41, 51):
        rows.append(f"dispute, {client_id}, {client_id * 100 + 2},")
    for client_id in range(41, 51):
        rows.append(f"resolve, {client_id}, {client_id * 100 + 2},")

    # Client 51-60: Withdrawal leaves too little to dispute the deposit
    for client_id in range(51, 61):
        rows.append(f"deposit, {client_id}, {client_id * 100 + 1}, 100")
        rows.append(f"withdrawal, {client_id}, {client_id * 100 + 2}, 80")
    for client_id in range(51, 61):
        rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")

    return rows


class TestPaymentsEngineLargeScale:
    @pytest.mark.parametrize("shards", [1, 10])
    def test_1000_accounts_6000_transactions(self, tmp_path, shards):
        """Test with 1000 accounts and 6000 transactions."""
        num_clients = 1000
        rows = ["type, client, tx, amount"]
        tx_id = 1

        # Each client gets: 3 deposits (100, 200, 300) and 2 withdrawals (50, 100)
        for client_id in range(1, num_clients + 1):
            rows.append(f"deposit, {client_id}, {tx_id}, 100")
            tx_id += 1
            rows.append(f"deposit, {client_id}, {tx_id}, 200")
            tx_id += 1
            rows.append(f"deposit, {client_id}, {tx_id}, 300")
            tx_id += 1
            rows.append(f"withdrawal, {client_id}, {tx_id}, 50")
            tx_id += 1
            rows.append(f"withdrawal, {client_id}, {tx_id}, 100")
            tx_id += 1

        # Extra deposit for each client
        for client_id in range(1, num_clients + 1):
            rows.append(f"deposit, {client_id}, {tx_id}, 50")
            tx_id += 1

        expected_balance = Decimal("500")  # 450 + 50

        csv_file = tmp_path / "large_test.csv"
        csv_file.write_text('\n'.join(rows))

        engine = PaymentsEngine(LedgerSettings(shards=shards))
        accounts = engine.process_file(str(csv_file))

        assert len(accounts) == num_clients
        assert engine.stats.accepted == 6000
        assert engine.stats.rejected == 0

        for client_id in range(1, num_clients + 1):
            assert accounts[client_id].available == expected_balance, \
                f"Client {client_id}: expected {expected_balance}, got {accounts[client_id].available}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].locked is False

    @pytest.mark.parametrize("shards", [1, 7])
    def test_with_disputes_resolves_chargebacks(self, tmp_path, shards):
        csv_file = tmp_path / "disputes_test.csv"
        csv_file.write_text('\n'.join(build_dispute_rows()))

        engine = PaymentsEngine(LedgerSettings(shards=shards))
        accounts = engine.process_file(str(csv_file))

        for client_id in range(1, 11):
            assert accounts[client_id].available == Decimal("500"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].locked is False

        for client_id in range(11, 21):
            assert accounts[client_id].available == Decimal("500"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].locked is False

        for client_id in range(21, 31):
            assert accounts[client_id].available == Decimal("400"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].total == Decimal("400")
            assert accounts[client_id].locked is True

        for client_id in range(31, 41):
            assert accounts[client_id].available == Decimal("150"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("150")
            assert accounts[client_id].total == Decimal("300")
            assert accounts[client_id].locked is False

        for client_id in range(41, 51):
            assert accounts[client_id].available == Decimal("600"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].locked is False

        for client_id in range(51, 61):
            assert accounts[client_id].available == Decimal("20"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")

        assert engine.stats.rejections == {
            RejectionReason.ACCOUNT_LOCKED: 10,
            RejectionReason.INSUFFICIENT_FUNDS_FOR_DISPUTE: 10,
        }

    def test_sharded_matches_sequential(self, tmp_path):
        csv_file = tmp_path / "disputes_test.csv"
        csv_file.write_text('\n'.join(build_dispute_rows()))

        sequential = PaymentsEngine(LedgerSettings(shards=1))
        sequential.process_file(str(csv_file))
        sharded = PaymentsEngine(LedgerSettings(shards=4))
        sharded.process_file(str(csv_file))

        assert sharded.snapshot() == sequential.snapshot()

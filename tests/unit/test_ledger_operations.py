"""
test_ledger_operations.py - Unit tests for ledger.py

Tests:
- Wallet and unit registration
- Issuance, redemption and transfers
- Rejection (apply raises, execute returns REJECTED)
- Audit log and double-entry verification
- Rolling back journaled writes
"""

import pytest

from stakepool import (
    Ledger, Move, ExecuteResult, TransactionOrigin, OriginType,
    build_transaction, native_asset, share_units,
    SYSTEM_WALLET, LedgerView,
    LedgerError, InsufficientFunds, UnitNotRegistered, WalletNotRegistered,
)


class TestRegistration:

    def test_system_wallet_registered(self, ledger):
        assert ledger.is_registered(SYSTEM_WALLET)

    def test_duplicate_wallet_rejected(self, ledger):
        with pytest.raises(ValueError, match="already registered"):
            ledger.register_wallet("alice")

    def test_ensure_wallet_is_idempotent(self, ledger):
        ledger.ensure_wallet("carol")
        ledger.ensure_wallet("carol")
        assert "carol" in ledger.list_wallets()

    def test_duplicate_unit_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.register_unit(native_asset())

    def test_unknown_wallet_and_unit(self, ledger):
        with pytest.raises(WalletNotRegistered):
            ledger.get_balance("nobody", "CSPR")
        with pytest.raises(UnitNotRegistered):
            ledger.get_balance("alice", "XYZ")

    def test_implements_ledger_view(self, ledger):
        assert isinstance(ledger, LedgerView)


class TestTransfers:

    def test_issue_then_transfer(self, ledger):
        ledger.issue("alice", "CSPR", 1000)
        ledger.transfer("CSPR", "alice", "bob", 300, "pay")
        assert ledger.get_balance("alice", "CSPR") == 700
        assert ledger.get_balance("bob", "CSPR") == 300
        assert ledger.get_balance(SYSTEM_WALLET, "CSPR") == -1000

    def test_zero_transfer_is_noop(self, ledger):
        assert ledger.transfer("CSPR", "alice", "bob", 0, "pay") is None
        assert ledger.transaction_log == []

    def test_overdraft_raises(self, ledger):
        ledger.issue("alice", "CSPR", 10)
        with pytest.raises(InsufficientFunds, match="alice CSPR"):
            ledger.transfer("CSPR", "alice", "bob", 11, "pay")
        assert ledger.get_balance("alice", "CSPR") == 10

    def test_execute_returns_rejected(self, ledger):
        tx = build_transaction(ledger, [Move(5, "CSPR", "alice", "bob", "pay")])
        assert ledger.execute(tx) == ExecuteResult.REJECTED
        assert ledger.transaction_log == []

    def test_execute_applies(self, ledger):
        ledger.issue("alice", "CSPR", 5)
        tx = build_transaction(ledger, [Move(5, "CSPR", "alice", "bob", "pay")])
        assert ledger.execute(tx) == ExecuteResult.APPLIED
        assert ledger.get_balance("bob", "CSPR") == 5

    def test_multi_move_nets_before_checking(self, ledger):
        """A wallet may pass through zero within one transaction."""
        ledger.issue("alice", "CSPR", 10)
        tx = build_transaction(ledger, [
            Move(10, "CSPR", "alice", "bob", "a"),
            Move(10, "CSPR", "bob", "alice", "b"),
            Move(10, "CSPR", "alice", "bob", "c"),
        ])
        ledger.apply(tx)
        assert ledger.get_balance("bob", "CSPR") == 10

    def test_unknown_dest_rejected(self, ledger):
        ledger.issue("alice", "CSPR", 10)
        with pytest.raises(WalletNotRegistered):
            ledger.transfer("CSPR", "alice", "ghost", 1, "pay")

    def test_redeem(self, ledger):
        ledger.issue("alice", "CSPR", 10)
        ledger.redeem("alice", "CSPR", 4)
        assert ledger.get_balance("alice", "CSPR") == 6


class TestAuditTrail:

    def test_every_transfer_logged_with_sequence(self, ledger, clock):
        ledger.issue("alice", "CSPR", 10)
        clock.advance(500)
        ledger.transfer("CSPR", "alice", "bob", 3, "pay")
        assert [tx.sequence_number for tx in ledger.transaction_log] == [0, 1]
        assert ledger.transaction_log[1].timestamp == 500
        assert ledger.transaction_log[1].exec_id == "exec:test:000000000001:500"

    def test_origin_recorded(self, ledger):
        origin = TransactionOrigin(OriginType.USER_ACTION, "alice", "gift")
        ledger.issue("alice", "CSPR", 10)
        tx = ledger.transfer("CSPR", "alice", "bob", 3, "gift", origin)
        assert tx.origin == origin

    def test_double_entry_holds(self, ledger):
        ledger.register_unit(share_units())
        ledger.issue("alice", "CSPR", 100)
        ledger.issue("bob", "thCSPR", 7)
        ledger.transfer("CSPR", "alice", "bob", 40, "pay")
        result = ledger.verify_double_entry()
        assert result["valid"]
        assert result["supplies"] == {"CSPR": 0, "thCSPR": 0}

    def test_set_balance_breaks_double_entry(self, ledger):
        ledger.set_balance("alice", "CSPR", 5)
        result = ledger.verify_double_entry()
        assert not result["valid"]
        assert result["discrepancies"] == [{"unit": "CSPR", "actual": 5}]

    def test_set_balance_requires_test_mode(self, clock):
        ledger = Ledger("prod", clock, verbose=False)
        ledger.register_unit(native_asset())
        ledger.register_wallet("alice")
        with pytest.raises(LedgerError, match="test_mode"):
            ledger.set_balance("alice", "CSPR", 5)

    def test_circulating_supply_excludes_system(self, ledger):
        ledger.issue("alice", "CSPR", 60)
        ledger.issue("bob", "CSPR", 40)
        assert ledger.circulating_supply("CSPR") == 100
        assert ledger.total_supply("CSPR") == 0


class TestJournalRollback:

    def test_rollback_undoes_balances_log_and_wallets(self, ledger):
        ledger.issue("alice", "CSPR", 100)
        ledger.journal.open()
        mark = ledger.journal.savepoint()

        ledger.ensure_wallet("carol")
        ledger.transfer("CSPR", "alice", "carol", 60, "pay")
        ledger.journal.rollback(mark)
        ledger.journal.close()

        assert ledger.get_balance("alice", "CSPR") == 100
        assert not ledger.is_registered("carol")
        assert len(ledger.transaction_log) == 1
        assert ledger.get_positions("CSPR") == {SYSTEM_WALLET: -100, "alice": 100}

    def test_sequence_continues_after_rollback(self, ledger):
        ledger.issue("alice", "CSPR", 100)
        ledger.journal.open()
        mark = ledger.journal.savepoint()
        ledger.transfer("CSPR", "alice", "bob", 1, "pay")
        ledger.journal.rollback(mark)
        ledger.journal.close()
        tx = ledger.transfer("CSPR", "alice", "bob", 1, "pay")
        assert tx.sequence_number == 1

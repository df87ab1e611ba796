import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import config
from errors import InsufficientFunds, ParseError, UnknownTransaction
from ledger import Ledger
from models import AccountSnapshot, ProcessingPolicy, Transaction, TransactionType
from processor import EventProcessor


def make_events():
    return [
        Transaction(TransactionType.DEPOSIT, client_id=1, transaction_id=1, amount=Decimal("5.0")),
        Transaction(TransactionType.WITHDRAWAL, client_id=1, transaction_id=2, amount=Decimal("9.0")),
        Transaction(TransactionType.DEPOSIT, client_id=1, transaction_id=3, amount=Decimal("3.0")),
    ]


class TestEventProcessor:
    def test_default_policy_is_abort(self, monkeypatch):
        monkeypatch.delenv("PAYMENTS_PROCESSING_POLICY", raising=False)
        config.reload_config()

        processor = EventProcessor()
        assert processor.policy is ProcessingPolicy.ABORT_ON_FIRST_ERROR

    def test_policy_from_environment(self, monkeypatch):
        monkeypatch.setenv("PAYMENTS_PROCESSING_POLICY", "continue")
        config.reload_config()
        try:
            processor = EventProcessor()
            assert processor.policy is ProcessingPolicy.CONTINUE_ON_REJECTION
        finally:
            monkeypatch.delenv("PAYMENTS_PROCESSING_POLICY")
            config.reload_config()

    def test_abort_on_first_error(self):
        processor = EventProcessor(policy=ProcessingPolicy.ABORT_ON_FIRST_ERROR)

        with pytest.raises(InsufficientFunds):
            processor.run(make_events())

        # Third event never reached the ledger
        assert processor.ledger.get_account(1).available == Decimal("5")
        assert processor.stats.processed == 1
        assert processor.stats.rejected == 1

    def test_continue_on_rejection(self):
        processor = EventProcessor(policy=ProcessingPolicy.CONTINUE_ON_REJECTION)

        snapshots = processor.run(make_events())

        assert snapshots == [
            AccountSnapshot(client_id=1, available=Decimal("8"), held=Decimal("0"), total=Decimal("8"), locked=False)
        ]
        assert processor.stats.processed == 2
        assert processor.stats.rejected == 1

    def test_process_transaction_return_value(self):
        processor = EventProcessor(policy=ProcessingPolicy.CONTINUE_ON_REJECTION)

        dispute = Transaction(TransactionType.DISPUTE, client_id=1, transaction_id=1)
        assert processor.process_transaction(dispute) is False

        deposit = Transaction(TransactionType.DEPOSIT, client_id=1, transaction_id=1, amount=Decimal("1"))
        assert processor.process_transaction(deposit) is True

    def test_uses_given_ledger(self):
        ledger = Ledger()
        processor = EventProcessor(ledger=ledger, policy=ProcessingPolicy.ABORT_ON_FIRST_ERROR)

        processor.run(make_events()[:1])

        assert processor.ledger is ledger
        assert ledger.get_account(1).available == Decimal("5")

    def test_consumes_lazily(self):
        consumed = []

        def events():
            for event in make_events():
                consumed.append(event.transaction_id)
                yield event

        processor = EventProcessor(policy=ProcessingPolicy.ABORT_ON_FIRST_ERROR)
        with pytest.raises(InsufficientFunds):
            processor.run(events())

        assert consumed == [1, 2]

    def test_source_errors_propagate_under_continue(self):
        def events():
            yield make_events()[0]
            raise ParseError("bad row", line_number=3)

        processor = EventProcessor(policy=ProcessingPolicy.CONTINUE_ON_REJECTION)
        with pytest.raises(ParseError):
            processor.run(events())

    def test_snapshot_order_is_first_appearance(self):
        events = [
            Transaction(TransactionType.DEPOSIT, client_id=3, transaction_id=1, amount=Decimal("1")),
            Transaction(TransactionType.DISPUTE, client_id=1, transaction_id=9),
            Transaction(TransactionType.DEPOSIT, client_id=2, transaction_id=2, amount=Decimal("1")),
        ]
        processor = EventProcessor(policy=ProcessingPolicy.CONTINUE_ON_REJECTION)

        snapshots = processor.run(events)

        assert [s.client_id for s in snapshots] == [3, 1, 2]

    def test_abort_reports_rejected_event(self):
        processor = EventProcessor(policy=ProcessingPolicy.ABORT_ON_FIRST_ERROR)
        dispute = Transaction(TransactionType.DISPUTE, client_id=1, transaction_id=9)

        with pytest.raises(UnknownTransaction) as excinfo:
            processor.run([dispute])

        assert excinfo.value.transaction is dispute

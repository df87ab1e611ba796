import logging
from typing import Dict, List, Optional, Set, Tuple

from errors import (
    AccountLocked,
    ClientMismatch,
    InsufficientFunds,
    InvalidAmount,
    InvalidDisputeState,
    LedgerError,
    NotDisputable,
    TransactionIdReuse,
    UnexpectedAmount,
    UnknownTransaction,
)
from models import (
    AccountSnapshot,
    ClientAccount,
    DisputeState,
    Transaction,
    TransactionRecord,
    TransactionType,
)

logger = logging.getLogger(__name__)


class Ledger:
    """
    In-memory client accounts plus the deposit/withdrawal history needed for disputes.

    apply() raises a LedgerError subclass when an event is rejected. A rejected
    event never changes balances or transaction records; the only lasting effect
    it can have is materialising an empty account for a client seen for the
    first time.

    A locked account is frozen for new money: deposits and withdrawals
    against it are rejected with AccountLocked.

    Known limitation: a locked account still accepts dispute, resolve and
    chargeback events, which may keep moving its funds.
    """

    def __init__(self):
        # Insertion order doubles as first-appearance order for snapshots.
        self._accounts: Dict[int, ClientAccount] = {}
        self._transactions: Dict[Tuple[int, int], TransactionRecord] = {}
        self._transaction_owners: Dict[int, Set[int]] = {}

    def apply(self, transaction: Transaction) -> None:
        account = self._get_or_create_account(transaction.client_id)

        try:
            match transaction.transaction_type:
                case TransactionType.DEPOSIT:
                    self._handle_deposit(account, transaction)
                case TransactionType.WITHDRAWAL:
                    self._handle_withdrawal(account, transaction)
                case TransactionType.DISPUTE:
                    self._handle_dispute(account, transaction)
                case TransactionType.RESOLVE:
                    self._handle_resolve(account, transaction)
                case TransactionType.CHARGEBACK:
                    self._handle_chargeback(account, transaction)
        except LedgerError as e:
            if e.transaction is None:
                e.transaction = transaction
            raise

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def get_transaction(self, client_id: int, transaction_id: int) -> Optional[TransactionRecord]:
        return self._transactions.get((client_id, transaction_id))

    def snapshots(self) -> List[AccountSnapshot]:
        """Final state of every known account, in order of first appearance."""
        return [account.snapshot() for account in self._accounts.values()]

    def __len__(self) -> int:
        return len(self._accounts)

    def _get_or_create_account(self, client_id: int) -> ClientAccount:
        account = self._accounts.get(client_id)
        if account is None:
            account = ClientAccount(client_id=client_id)
            self._accounts[client_id] = account
        return account

    def _store_transaction(self, transaction: Transaction) -> None:
        record = TransactionRecord(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            kind=transaction.transaction_type,
            amount=transaction.amount,
        )
        self._transactions[(record.client_id, record.transaction_id)] = record
        self._transaction_owners.setdefault(record.transaction_id, set()).add(record.client_id)

    def _check_new_movement(self, account: ClientAccount, transaction: Transaction) -> None:
        """Checks shared by deposits and withdrawals."""
        name = transaction.transaction_type.value.capitalize()
        if transaction.amount is None or transaction.amount <= 0:
            raise InvalidAmount(f"{name} tx {transaction.transaction_id}: invalid amount {transaction.amount}")

        if account.locked:
            raise AccountLocked(f"{name} tx {transaction.transaction_id}: account {account.client_id} is locked")

        if (transaction.client_id, transaction.transaction_id) in self._transactions:
            raise TransactionIdReuse(
                f"{name} tx {transaction.transaction_id}: id already used by client {transaction.client_id}"
            )

    def _find_disputable(self, transaction: Transaction) -> TransactionRecord:
        """Lookup shared by dispute, resolve and chargeback."""
        name = transaction.transaction_type.value.capitalize()
        if transaction.amount is not None:
            raise UnexpectedAmount(f"{name} for tx {transaction.transaction_id}: must not carry an amount")

        record = self.get_transaction(transaction.client_id, transaction.transaction_id)
        if record is not None:
            return record

        owners = self._transaction_owners.get(transaction.transaction_id)
        if owners:
            raise ClientMismatch(
                f"{name} for tx {transaction.transaction_id}: belongs to client(s) {sorted(owners)}, "
                f"not {transaction.client_id}"
            )
        raise UnknownTransaction(f"{name} for tx {transaction.transaction_id}: transaction not found")

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> None:
        self._check_new_movement(account, transaction)
        account.credit(transaction.amount)
        self._store_transaction(transaction)

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> None:
        self._check_new_movement(account, transaction)
        if account.available < transaction.amount:
            raise InsufficientFunds(
                f"Withdrawal tx {transaction.transaction_id}: {transaction.amount} requested, "
                f"{account.available} available"
            )
        account.debit(transaction.amount)
        self._store_transaction(transaction)

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self._find_disputable(transaction)

        if original.dispute_state != DisputeState.NORMAL:
            raise InvalidDisputeState(
                f"Dispute for tx {transaction.transaction_id}: transaction is {original.dispute_state.value}"
            )

        # TODO: Withdrawal disputes could be supported by tracking payment state and attempting to recall funds
        if original.kind != TransactionType.DEPOSIT:
            raise NotDisputable(
                f"Dispute for tx {transaction.transaction_id}: only deposits can be disputed "
                f"(got {original.kind.value})"
            )

        if account.available < original.amount:
            raise InsufficientFunds(
                f"Dispute for tx {transaction.transaction_id}: {original.amount} to hold, "
                f"{account.available} available"
            )

        account.hold(original.amount)
        original.dispute_state = DisputeState.DISPUTED

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self._find_disputable(transaction)

        if original.dispute_state != DisputeState.DISPUTED:
            raise InvalidDisputeState(
                f"Resolve for tx {transaction.transaction_id}: transaction is {original.dispute_state.value}"
            )

        account.release_hold(original.amount)
        original.dispute_state = DisputeState.RESOLVED

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self._find_disputable(transaction)

        if original.dispute_state != DisputeState.DISPUTED:
            raise InvalidDisputeState(
                f"Chargeback for tx {transaction.transaction_id}: transaction is {original.dispute_state.value}"
            )

        account.remove_held(original.amount)
        account.locked = True
        original.dispute_state = DisputeState.CHARGED_BACK
        logger.info(f"Chargeback for tx {transaction.transaction_id}: account {account.client_id} locked")

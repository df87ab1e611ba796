class PaymentsError(Exception):
    """Base class for every error raised by the payments ledger."""


class ParseError(PaymentsError):
    """An input record could not be turned into a Transaction."""

    def __init__(self, message: str, line_number: int = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class LedgerError(PaymentsError):
    """
    The ledger refused to apply an event.
    Ledger state is left as it was before the event.
    """

    def __init__(self, message: str, transaction=None):
        self.transaction = transaction
        super().__init__(message)


class InvalidAmount(LedgerError):
    """Deposit or withdrawal amount is missing, zero or negative."""


class UnexpectedAmount(LedgerError):
    """Dispute, resolve or chargeback carried an amount."""


class TransactionIdReuse(LedgerError):
    """Two transactions attempted with the same id for one client."""


class InsufficientFunds(LedgerError):
    pass


class UnknownTransaction(LedgerError):
    pass


class ClientMismatch(UnknownTransaction):
    """The referenced transaction id belongs to a different client."""


class InvalidDisputeState(LedgerError):
    pass


class NotDisputable(LedgerError):
    pass


class AccountLocked(LedgerError):
    pass


class ArithmeticOverflow(LedgerError):
    """A balance would leave the fixed-precision range or lose precision."""

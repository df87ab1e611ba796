import logging
from typing import Iterable, List, Optional

from config import get_config
from csv_io import read_transactions
from errors import LedgerError
from ledger import Ledger
from models import AccountSnapshot, ProcessingPolicy, ProcessingStats, Transaction

logger = logging.getLogger(__name__)


class EventProcessor:
    """
    Feeds events to the Ledger one at a time, in input order.

    The policy decides what a rejected event means for the run:
        ABORT_ON_FIRST_ERROR: the LedgerError is re-raised and processing stops
        CONTINUE_ON_REJECTION: the event is logged, counted and skipped

    Errors from the event source itself (parse or I/O failures) always propagate.
    """

    def __init__(self, ledger: Optional[Ledger] = None, policy: Optional[ProcessingPolicy] = None):
        self._ledger = ledger if ledger is not None else Ledger()
        self._policy = policy if policy is not None else get_config().processing_policy
        self._stats = ProcessingStats()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def policy(self) -> ProcessingPolicy:
        return self._policy

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> List[AccountSnapshot]:
        """Process CSV file and return final account snapshots."""
        logger.info(f"Processing {filepath} with policy {self._policy.value}")
        return self.run(read_transactions(filepath))

    def run(self, transactions: Iterable[Transaction]) -> List[AccountSnapshot]:
        for transaction in transactions:
            self.process_transaction(transaction)

        logger.info(f"Processed: {self._stats.processed}, Rejected: {self._stats.rejected}")
        return self._ledger.snapshots()

    def process_transaction(self, transaction: Transaction) -> bool:
        """Apply one event. Returns False if it was rejected and skipped."""
        try:
            self._ledger.apply(transaction)
        except LedgerError as e:
            self._stats.record_rejection()
            if self._policy is ProcessingPolicy.ABORT_ON_FIRST_ERROR:
                logger.error(f"Rejected {transaction}: {e}")
                raise
            logger.warning(f"Skipping {transaction}: {e}")
            return False

        self._stats.record_success()
        return True

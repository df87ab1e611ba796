import sys
import logging

from config import get_config
from csv_io import write_accounts
from errors import PaymentsError
from processor import EventProcessor

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def run(filepath: str) -> int:
    """Process one input file, print the account report and return the exit code."""
    processor = EventProcessor()
    try:
        snapshots = processor.process_file(filepath)
    except OSError as e:
        logger.error(f"Failed to open given file {filepath}: {e}")
        return 1
    except PaymentsError as e:
        logger.error(f"Failed to enact transactions: {e}")
        return 1

    write_accounts(snapshots, sys.stdout)
    return 0


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: payments-ledger <input.csv>", file=sys.stderr)
        sys.exit(1)

    configure_logging(get_config().log_level)
    sys.exit(run(args[0]))


if __name__ == "__main__":
    main()

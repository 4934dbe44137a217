import json
from pathlib import Path
from typing import List

from transaction_tagger.domain.models import Transaction
from transaction_tagger.logging_setup import get_logger
from transaction_tagger.parsers.base import RecordLoader, RecordParseError, record_to_transaction

logger = get_logger(__name__)


class JSONRecordLoader(RecordLoader):
    """Loader for JSON exports: a top-level array of canonical records."""

    extensions = [".json"]

    def parse(self, filepath: Path | str) -> List[Transaction]:
        path = self.validate_file(filepath)

        try:
            with open(path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RecordParseError(f"JSON parsing failed for {path}: {e}") from e

        if not isinstance(data, list):
            raise RecordParseError("JSON data must be an array of transactions")

        transactions = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                logger.warning("Item %d: skipping non-object entry", index)
                continue
            try:
                transactions.append(record_to_transaction(item, fallback_id=f"{path.stem}_{index}"))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Item %d: skipping malformed record: %s", index, e)
                continue

        logger.info("Parsed %d transactions from %s", len(transactions), path)
        return transactions

from pathlib import Path
from typing import List

import pandas as pd

from transaction_tagger.domain.models import Transaction
from transaction_tagger.logging_setup import get_logger
from transaction_tagger.parsers.base import RecordLoader, RecordParseError, record_to_transaction

logger = get_logger(__name__)


class CSVRecordLoader(RecordLoader):
    """
    Loader for delimited files with canonical column names.

    Every column is read as text so amounts keep their exact integer
    value; rows without a description or amount are skipped.
    """

    extensions = [".csv"]
    REQUIRED_COLUMNS = ["description", "amount"]

    def parse(self, filepath: Path | str) -> List[Transaction]:
        path = self.validate_file(filepath)

        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise RecordParseError(f"Failed to read CSV file {path}: {e}") from e

        df.columns = [str(col).strip() for col in df.columns]
        self._validate_columns(df)

        transactions = []
        for index, row in df.iterrows():
            record = {col: row[col] for col in df.columns}
            if not record.get("description", "").strip():
                logger.warning("Row %d: skipping row without description", index + 2)
                continue
            try:
                transactions.append(record_to_transaction(record, fallback_id=f"{path.stem}_{index}"))
            except (TypeError, ValueError) as e:
                logger.warning("Row %d: skipping malformed row: %s", index + 2, e)
                continue

        logger.info("Parsed %d transactions from %s", len(transactions), path)
        return transactions

    def _validate_columns(self, df: pd.DataFrame) -> None:
        """Ensure all required columns are present"""
        missing = [col for col in self.REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            raise RecordParseError(
                f"Missing required columns: {missing}. "
                f"Available columns: {list(df.columns)}"
            )

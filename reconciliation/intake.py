"""
CSV intake into the staging buffer
"""

import pandas as pd
from typing import List
from pathlib import Path
from datetime import datetime
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from models.staging import StagingOrder
from schemas.staging import StagingRowIn
import logging

logger = logging.getLogger(__name__)

# Accepted header spellings, after lowercasing and replacing spaces
COLUMN_ALIASES = {
    "customer_id": "customer_ref",
    "customer": "customer_ref",
    "product_id": "product_ref",
    "product": "product_ref",
    "qty": "quantity",
    "price": "unit_price",
    "date": "order_date",
}


class StagingCSVIntake:
    """
    Append rows from a CSV file to ``staging_orders``.

    Rows are only type-coerced here; anything that parses becomes a pending
    staging row, and business validation happens in the next run. Rows that
    cannot be coerced at all are skipped and logged.
    """

    def __init__(self, db_session: AsyncSession, file_path: str):
        self.db = db_session
        self.file_path = Path(file_path)

    def read_rows(self) -> List[StagingRowIn]:
        """Parse the CSV into staging schemas"""
        if not self.file_path.exists():
            logger.warning(f"CSV file not found: {self.file_path}")
            return []

        logger.info(f"Reading staging CSV from {self.file_path}")

        df = pd.read_csv(self.file_path, dtype=str, keep_default_na=False)
        df.columns = df.columns.str.strip().str.lower().str.replace(' ', '_')
        df = df.rename(columns=COLUMN_ALIASES)

        rows = []
        for index, record in enumerate(df.to_dict(orient="records")):
            record["source_file"] = str(self.file_path)
            try:
                rows.append(StagingRowIn(**record))
            except SchemaValidationError as e:
                logger.warning(
                    f"Skipping unparseable CSV line {index + 2} in {self.file_path.name}: "
                    f"{e.error_count()} field errors"
                )

        logger.info(f"Parsed {len(rows)} of {len(df)} CSV rows")
        return rows

    async def ingest(self) -> int:
        """Append parsed rows as pending staging rows; returns rows written"""
        rows = self.read_rows()
        if not rows:
            return 0

        now = datetime.utcnow()
        for row in rows:
            self.db.add(StagingOrder(
                **row.model_dump(),
                ingested_at=now,
                valid=False,
                processed=False,
                retry_count=0
            ))

        await self.db.commit()
        logger.info(f"Staged {len(rows)} rows from {self.file_path.name}")
        return len(rows)

"""
SequenceService -- identifier allocation via persisted counter rows.

Responsibility:
    Hands out monotonically increasing values per named counter and
    formats them into business identifiers:

        SKU ids          YDC-PROC-0001
        transaction ids  YDC-PROC-TRX-000001   (the LinkID of a ledger row)

Architecture position:
    Kernel > Services.  Used by the workflow engine (LinkIDs) and the
    catalog service (new SKUs).

Invariants enforced:
    - The counter row is the only source of truth for the next value;
      no max(id)+1 scans over business tables.
    - Reads take ``SELECT ... FOR UPDATE`` on the counter row and
      increments are visible only when the caller's transaction commits.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_config import IdentifierSettings
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Transactional named counters. Never commits; the caller does."""

    SKU = "sku"
    TRANSACTION = "transaction"

    def __init__(self, session: Session, identifiers: IdentifierSettings | None = None):
        self._session = session
        self._identifiers = identifiers or IdentifierSettings()

    def next_value(self, sequence_name: str) -> int:
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_sku(self) -> str:
        ids = self._identifiers
        return f"{ids.sku_prefix}-{self.next_value(self.SKU):0{ids.sku_width}d}"

    def next_link_id(self) -> str:
        ids = self._identifiers
        return f"{ids.transaction_prefix}-{self.next_value(self.TRANSACTION):0{ids.transaction_width}d}"

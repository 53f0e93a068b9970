"""
HistoryStore: the append-only, per-product event sequence.

Events are only written by the ProductLedger as part of a transition and are
never updated or deleted. Each event is linked to its predecessor with the
same sha256 chain used for lot events, so the sequence can be re-verified.
"""
import logging
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import HistoryEvent
from utils import GENESIS, compute_hash, verify_chain

logger = logging.getLogger(__name__)


class HistoryStore:
    def __init__(self, db: Session):
        self.db = db

    def _last(self, product_id: int):
        return self.db.scalar(
            select(HistoryEvent)
            .where(HistoryEvent.product_id == product_id)
            .order_by(HistoryEvent.seq.desc())
            .limit(1)
        )

    def append(self, product_id: int, event: HistoryEvent) -> HistoryEvent:
        """Add event at the end of product_id's sequence. Caller commits."""
        prev = self._last(product_id)
        event.product_id = product_id
        event.seq = prev.seq + 1 if prev else 1
        event.prev_hash = prev.hash if prev else GENESIS
        event.hash = compute_hash(event.prev_hash, event.payload(), event.timestamp)
        self.db.add(event)
        self.db.flush()
        logger.debug("history product=%s seq=%s action=%r", product_id, event.seq, event.action)
        return event

    def get(self, product_id: int) -> List[HistoryEvent]:
        """Events in insertion order; empty for an unknown product."""
        return list(self.db.scalars(
            select(HistoryEvent)
            .where(HistoryEvent.product_id == product_id)
            .order_by(HistoryEvent.seq.asc())
        ).all())

    def verify(self, product_id: int) -> bool:
        return self.check(product_id)[0]

    def check(self, product_id: int) -> Tuple[bool, int]:
        """Recompute the chain; returns (intact, number of events checked)."""
        chain = [{
            "payload": e.payload(),
            "timestamp": e.timestamp,
            "prev_hash": e.prev_hash,
            "hash": e.hash,
        } for e in self.get(product_id)]
        return verify_chain(chain), len(chain)

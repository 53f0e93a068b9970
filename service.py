"""
TraceChain: the operations offered to the HTTP layer (or any other caller).

Each write runs under one exclusive lock and one database transaction that
spans the whole read-check-write-append sequence, so a product's status and
its history event either both commit or neither does. The caller identity is
always an explicit argument.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

import notifications as notes
from authorization import POLICIES, AuthorizationGate
from errors import TraceChainError
from history import HistoryStore
from ledger import ProductLedger
from lifecycle import ProductStatus, Role
from models import HistoryEvent, Participant, Product
from notifications import Notifier
from registry import IdentityRegistry

logger = logging.getLogger(__name__)


def unix_now() -> int:
    return int(time.time())


class TraceChain:
    def __init__(
        self,
        session_factory: sessionmaker,
        admin_identity: str,
        policy: str = "permissive",
        notifier: Optional[Notifier] = None,
        clock: Callable[[], int] = unix_now,
    ):
        self.session_factory = session_factory
        self.admin_identity = admin_identity
        self.policy = policy
        self.notifier = notifier or Notifier()
        self.clock = clock
        self._write_lock = threading.RLock()
        if policy not in POLICIES:
            raise ValueError(f"unknown transition policy {policy!r}, expected one of {POLICIES}")

    # ---------- plumbing ----------
    def _components(self, db: Session) -> Tuple[IdentityRegistry, AuthorizationGate, ProductLedger]:
        registry = IdentityRegistry(db)
        gate = AuthorizationGate.for_policy(registry, self.admin_identity, self.policy)
        ledger = ProductLedger(db, gate, HistoryStore(db))
        return registry, gate, ledger

    @contextmanager
    def _write(self, op: str):
        """Yields (registry, ledger, outbox); outbox entries are emitted only after commit."""
        outbox: List[Tuple[str, dict]] = []
        with self._write_lock:
            try:
                with self.session_factory() as db, db.begin():
                    registry, _, ledger = self._components(db)
                    yield registry, ledger, outbox
            except TraceChainError as e:
                logger.warning("%s rejected: %s (%s)", op, e.message, e.kind)
                raise
            # still under the lock, so per-product order follows call order
            for kind, data in outbox:
                self.notifier.emit(kind, **data)
        self.notifier.flush()

    @contextmanager
    def _read(self, consistent: bool = False):
        if consistent:
            with self._write_lock, self.session_factory() as db:
                yield self._components(db)
        else:
            with self.session_factory() as db:
                yield self._components(db)

    # ---------- writes ----------
    def register_user(self, identity: str, name: str, role: Optional[Role], location: str) -> Participant:
        with self._write("register_user") as (registry, _, outbox):
            participant = registry.register(identity, name, role, location, self.clock())
            outbox.append((notes.USER_REGISTERED, dict(
                identity=identity, name=name, role=participant.role.value,
                location=location, registered_at=participant.registered_at)))
        logger.info("Registered %s as %s", identity, participant.role.value)
        return participant

    def verify_user(self, admin_identity: str, target_identity: str) -> Participant:
        with self._write("verify_user") as (registry, ledger, outbox):
            participant = registry.verify(admin_identity, target_identity, ledger.gate.is_admin)
            outbox.append((notes.USER_VERIFIED, dict(identity=target_identity, verified_by=admin_identity)))
        logger.info("Verified %s", target_identity)
        return participant

    def register_product(
        self,
        identity: str,
        name: str,
        variety: str,
        farm_location: str,
        is_organic: bool,
        batch_size: int,
        certifications: str = "",
    ) -> int:
        with self._write("register_product") as (_, ledger, outbox):
            product = ledger.register_product(identity, name, variety, farm_location,
                                              is_organic, batch_size, certifications, self.clock())
            first = ledger.history.get(product.id)[0]
            outbox.append((notes.PRODUCT_REGISTERED, dict(
                product_id=product.id, name=name, farmer=identity, farm_location=farm_location,
                is_organic=product.is_organic, batch_size=batch_size,
                planted_date=product.planted_date)))
            outbox.append((notes.HISTORY_ADDED, _event_fields(first)))
        logger.info("Product %s registered by %s", product.id, identity)
        return product.id

    def update_product_status(
        self,
        identity: str,
        product_id: int,
        new_status: ProductStatus,
        location: str,
        action: str,
        additional_info: str = "",
    ) -> HistoryEvent:
        with self._write("update_product_status") as (_, ledger, outbox):
            event = ledger.update_status(identity, product_id, new_status, location,
                                         action, additional_info, self.clock())
            outbox.append((notes.STATUS_UPDATED, dict(
                product_id=product_id, status=event.status.value,
                updated_by=identity, timestamp=event.timestamp)))
            outbox.append((notes.HISTORY_ADDED, _event_fields(event)))
        logger.info("Product %s -> %s by %s", product_id, event.status.value, identity)
        return event

    # ---------- reads ----------
    def get_product_history(self, product_id: int) -> Tuple[Product, List[HistoryEvent]]:
        with self._read(consistent=True) as (_, _, ledger):
            return ledger.get_history(product_id)

    def get_product(self, product_id: int) -> Product:
        with self._read() as (_, _, ledger):
            return ledger.get(product_id)

    def get_products_by_farmer(self, farmer: str) -> List[int]:
        with self._read() as (_, _, ledger):
            return ledger.get_by_farmer(farmer)

    def get_products_by_status(self, status: ProductStatus) -> List[int]:
        with self._read() as (_, _, ledger):
            return ledger.get_by_status(status)

    def verify_organic(self, product_id: int) -> bool:
        with self._read() as (_, _, ledger):
            return ledger.is_organic(product_id)

    def verify_product_history(self, product_id: int) -> bool:
        with self._read(consistent=True) as (_, _, ledger):
            return ledger.verify_history(product_id)

    def check_product_history(self, product_id: int) -> Tuple[bool, int]:
        with self._read(consistent=True) as (_, _, ledger):
            return ledger.check_history(product_id)

    def find_products(self, farmer: Optional[str] = None, status: Optional[ProductStatus] = None) -> List[int]:
        with self._read() as (_, _, ledger):
            return ledger.find_products(farmer, status)

    def get_all_products(self) -> List[int]:
        with self._read() as (_, _, ledger):
            return ledger.list_all()

    def get_user_info(self, identity: str) -> Participant:
        with self._read() as (registry, _, _):
            return registry.get(identity)

    def list_users(self) -> List[str]:
        with self._read() as (registry, _, _):
            return registry.list_identities()

    def role_counts(self) -> Dict[Role, int]:
        with self._read() as (registry, _, _):
            return registry.role_counts()


def _event_fields(event: HistoryEvent) -> dict:
    return {
        "product_id": event.product_id,
        "seq": event.seq,
        "actor": event.actor,
        "role": event.role.value,
        "timestamp": event.timestamp,
        "location": event.location,
        "action": event.action,
        "additional_info": event.additional_info,
        "status": event.status.value,
        "hash": event.hash,
    }

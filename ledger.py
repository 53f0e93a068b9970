"""
ProductLedger: product records and their lifecycle.

Every mutation here writes the product row and exactly one HistoryEvent in the
same session; the caller commits both or rolls both back. All checks run
before anything is added to the session.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from authorization import AuthorizationGate
from errors import InvalidInput, InvalidTransition, NotFound, Unauthorized
from history import HistoryStore
from lifecycle import INITIAL_STATUS, ProductStatus, Role, is_valid_transition
from models import HistoryEvent, Product
from utils import require_text

logger = logging.getLogger(__name__)

PLANTED_ACTION = "Product Planted"


class ProductLedger:
    def __init__(self, db: Session, gate: AuthorizationGate, history: HistoryStore):
        self.db = db
        self.gate = gate
        self.history = history

    # ---------- writes ----------
    def register_product(
        self,
        identity: str,
        name: str,
        variety: str,
        farm_location: str,
        is_organic: bool,
        batch_size: int,
        certifications: str,
        now: int,
    ) -> Product:
        if not self.gate.can_register_product(identity):
            raise Unauthorized(f"{identity!r} is not a verified farmer")
        if not require_text(name):
            raise InvalidInput("product name is required")
        if not require_text(farm_location):
            raise InvalidInput("farm location is required")
        if batch_size is None or batch_size <= 0:
            raise InvalidInput("batch size must be greater than zero")

        product = Product(
            id=self._next_id(),
            name=name,
            variety=variety or "",
            farm_location=farm_location,
            farmer=identity,
            is_organic=bool(is_organic),
            batch_size=batch_size,
            certifications=certifications or "",
            status=INITIAL_STATUS,
            planted_date=now,
            harvested_date=0,
        )
        self.db.add(product)
        self.db.flush()
        self.history.append(product.id, HistoryEvent(
            actor=identity,
            role=Role.FARMER,
            timestamp=now,
            location=farm_location,
            action=PLANTED_ACTION,
            additional_info=str(batch_size),
            status=INITIAL_STATUS,
        ))
        return product

    def update_status(
        self,
        identity: str,
        product_id: int,
        new_status: ProductStatus,
        location: str,
        action: str,
        additional_info: str,
        now: int,
    ) -> HistoryEvent:
        product = self.get(product_id)
        new_status = _parse_status(new_status)
        if not self.gate.can_append_transition(identity, new_status):
            raise Unauthorized(f"{identity!r} may not update product {product_id}")
        if not is_valid_transition(product.status, new_status):
            raise InvalidTransition(product.status, new_status)
        if not require_text(location):
            raise InvalidInput("location is required")
        if not require_text(action):
            raise InvalidInput("action is required")

        actor = self.gate.registry.get(identity)
        product.status = new_status
        if new_status == ProductStatus.HARVESTED and not product.harvested_date:
            product.harvested_date = now
        return self.history.append(product.id, HistoryEvent(
            actor=identity,
            role=actor.role,
            timestamp=now,
            location=location,
            action=action,
            additional_info=additional_info or "",
            status=new_status,
        ))

    def _next_id(self) -> int:
        # callers hold the write lock, so max+1 cannot race
        current = self.db.scalar(select(func.max(Product.id)))
        return (current or 0) + 1

    # ---------- reads ----------
    def find(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get(self, product_id: int) -> Product:
        product = self.find(product_id)
        if product is None:
            raise NotFound(f"product {product_id} not found")
        return product

    def get_history(self, product_id: int) -> Tuple[Product, List[HistoryEvent]]:
        product = self.get(product_id)
        return product, self.history.get(product_id)

    def verify_history(self, product_id: int) -> bool:
        return self.check_history(product_id)[0]

    def check_history(self, product_id: int) -> Tuple[bool, int]:
        """(chain intact, number of events) from one read of the history."""
        self.get(product_id)
        return self.history.check(product_id)

    def get_by_farmer(self, farmer: str) -> List[int]:
        return self.find_products(farmer=farmer)

    def get_by_status(self, status: ProductStatus) -> List[int]:
        return self.find_products(status=status)

    def find_products(self, farmer: Optional[str] = None, status: Optional[ProductStatus] = None) -> List[int]:
        query = select(Product.id)
        if farmer is not None:
            query = query.where(Product.farmer == farmer)
        if status is not None:
            query = query.where(Product.status == _parse_status(status))
        return list(self.db.scalars(query.order_by(Product.id.asc())).all())

    def is_organic(self, product_id: int) -> bool:
        return self.get(product_id).is_organic

    def list_all(self) -> List[int]:
        return list(self.db.scalars(select(Product.id).order_by(Product.id.asc())).all())


def _parse_status(value) -> ProductStatus:
    try:
        return ProductStatus(value)
    except ValueError:
        raise InvalidInput(f"unknown status {value!r}")

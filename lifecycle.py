"""
Product lifecycle and participant roles.

The lifecycle is a strict linear chain: each status has at most one legal
successor, Planted is only entered at registration and Sold is terminal.
"""
from enum import Enum
from typing import Optional


class Role(str, Enum):
    NONE = "None"  # unset; never accepted at registration
    FARMER = "Farmer"
    PROCESSOR = "Processor"
    DISTRIBUTOR = "Distributor"
    RETAILER = "Retailer"
    CONSUMER = "Consumer"


class ProductStatus(str, Enum):
    PLANTED = "Planted"
    HARVESTED = "Harvested"
    PROCESSED = "Processed"
    PACKAGED = "Packaged"
    IN_TRANSIT = "InTransit"
    AT_RETAILER = "AtRetailer"
    SOLD = "Sold"


INITIAL_STATUS = ProductStatus.PLANTED

# current status -> the only status it may move to
NEXT_STATUS: dict[ProductStatus, Optional[ProductStatus]] = {
    ProductStatus.PLANTED: ProductStatus.HARVESTED,
    ProductStatus.HARVESTED: ProductStatus.PROCESSED,
    ProductStatus.PROCESSED: ProductStatus.PACKAGED,
    ProductStatus.PACKAGED: ProductStatus.IN_TRANSIT,
    ProductStatus.IN_TRANSIT: ProductStatus.AT_RETAILER,
    ProductStatus.AT_RETAILER: ProductStatus.SOLD,
    ProductStatus.SOLD: None,  # terminal
}

# used by the stage-roles transition policy
STAGE_ROLES: dict[ProductStatus, frozenset[Role]] = {
    ProductStatus.HARVESTED: frozenset({Role.FARMER}),
    ProductStatus.PROCESSED: frozenset({Role.PROCESSOR}),
    ProductStatus.PACKAGED: frozenset({Role.PROCESSOR}),
    ProductStatus.IN_TRANSIT: frozenset({Role.DISTRIBUTOR}),
    ProductStatus.AT_RETAILER: frozenset({Role.RETAILER}),
    ProductStatus.SOLD: frozenset({Role.RETAILER}),
}


def next_status(current: ProductStatus) -> Optional[ProductStatus]:
    return NEXT_STATUS.get(current)


def is_valid_transition(current: ProductStatus, requested: ProductStatus) -> bool:
    """True if requested is the successor of current."""
    successor = next_status(current)
    return successor is not None and successor == requested


def is_terminal(status: ProductStatus) -> bool:
    return next_status(status) is None

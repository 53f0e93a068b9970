"""
AuthorizationGate: who may register products or append transitions.

Pure predicates over IdentityRegistry state; the gate keeps nothing of its own.
"""
from typing import Mapping, Optional, FrozenSet

from lifecycle import Role, ProductStatus, STAGE_ROLES
from registry import IdentityRegistry

POLICIES = ("permissive", "stage-roles")


class AuthorizationGate:
    def __init__(self, registry: IdentityRegistry, admin_identity: str,
                 stage_roles: Optional[Mapping[ProductStatus, FrozenSet[Role]]] = None):
        self.registry = registry
        self.admin_identity = admin_identity
        # None: any verified and authorized participant may advance any product
        self.stage_roles = stage_roles

    @classmethod
    def for_policy(cls, registry: IdentityRegistry, admin_identity: str, policy: str) -> "AuthorizationGate":
        if policy not in POLICIES:
            raise ValueError(f"unknown transition policy {policy!r}, expected one of {POLICIES}")
        return cls(registry, admin_identity, STAGE_ROLES if policy == "stage-roles" else None)

    def is_admin(self, identity: str) -> bool:
        return identity == self.admin_identity

    def can_register_product(self, identity: str) -> bool:
        participant = self.registry.find(identity)
        return participant is not None and participant.role == Role.FARMER and participant.verified

    def can_append_transition(self, identity: str, target: Optional[ProductStatus] = None) -> bool:
        participant = self.registry.find(identity)
        if participant is None or not (participant.authorized and participant.verified):
            return False
        if self.stage_roles is None or target is None:
            return True
        return participant.role in self.stage_roles.get(target, frozenset())

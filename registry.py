"""
IdentityRegistry: registered participants, their declared role and the
verification / authorized standing granted by the administrator.
"""
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from errors import AlreadyRegistered, AlreadyVerified, InvalidInput, InvalidRole, NotAdmin, NotRegistered
from lifecycle import Role
from models import Participant
from utils import require_text

logger = logging.getLogger(__name__)


class IdentityRegistry:
    def __init__(self, db: Session):
        self.db = db

    def find(self, identity: str) -> Optional[Participant]:
        return self.db.scalar(select(Participant).where(Participant.identity == identity))

    def get(self, identity: str) -> Participant:
        participant = self.find(identity)
        if participant is None:
            raise NotRegistered(f"identity {identity!r} is not registered")
        return participant

    def register(self, identity: str, name: str, role: Optional[Role], location: str, now: int) -> Participant:
        if not require_text(identity):
            raise InvalidInput("identity is required")
        try:
            role = Role(role) if role is not None else Role.NONE
        except ValueError:
            raise InvalidRole(f"unknown role {role!r}")
        if role == Role.NONE:
            raise InvalidRole("a role must be selected")
        if not require_text(name):
            raise InvalidInput("name is required")
        if not require_text(location):
            raise InvalidInput("location is required")
        if self.find(identity) is not None:
            raise AlreadyRegistered(f"identity {identity!r} is already registered")

        participant = Participant(
            identity=identity,
            name=name,
            role=role,
            location=location,
            verified=False,
            authorized=False,
            registered_at=now,
        )
        self.db.add(participant)
        self.db.flush()
        return participant

    def verify(self, caller: str, target_identity: str, is_admin: Callable[[str], bool]) -> Participant:
        if not is_admin(caller):
            raise NotAdmin("only the administrator can verify participants")
        participant = self.get(target_identity)
        if participant.verified:
            raise AlreadyVerified(f"identity {target_identity!r} is already verified")
        participant.verified = True
        participant.authorized = True
        self.db.flush()
        return participant

    def list_identities(self) -> List[str]:
        """Identities in registration order."""
        return list(self.db.scalars(select(Participant.identity).order_by(Participant.seq.asc())).all())

    def role_counts(self) -> Dict[Role, int]:
        counts = {role: 0 for role in Role if role != Role.NONE}
        rows = self.db.execute(
            select(Participant.role, func.count()).group_by(Participant.role)
        ).all()
        for role, n in rows:
            counts[role] = n
        return counts

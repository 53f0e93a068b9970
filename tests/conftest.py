"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy.pool import StaticPool

from database import Base, make_engine, make_session_factory
from lifecycle import Role
from service import TraceChain

ADMIN = "admin"


class FakeClock:
    """Deterministic unix-seconds clock; every reading advances one minute."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 60
        return self.now


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chain(session_factory, clock) -> TraceChain:
    return TraceChain(session_factory, admin_identity=ADMIN, clock=clock)


@pytest.fixture
def strict_chain(session_factory, clock) -> TraceChain:
    return TraceChain(session_factory, admin_identity=ADMIN, policy="stage-roles", clock=clock)


def enroll(tc: TraceChain, identity: str, role: Role = Role.FARMER, verify: bool = True):
    tc.register_user(identity, identity.title(), role, f"{identity} yard")
    if verify:
        tc.verify_user(ADMIN, identity)


@pytest.fixture
def alice(chain) -> str:
    """A verified farmer."""
    enroll(chain, "alice")
    return "alice"


@pytest.fixture
def tomatoes(chain, alice) -> int:
    return chain.register_product(alice, "Tomatoes", "Roma", "Farm A", True, 1000, "USDA Organic")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import DATABASE_URL


def make_engine(url: str = DATABASE_URL, **kwargs):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True, **kwargs)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine()
SessionLocal = make_session_factory(engine)

class Base(DeclarativeBase):
    pass

import os
import sys
import logging

# ---------- Config ----------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:////tmp/tracechain.db")
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
ADMIN_IDENTITY = os.getenv("ADMIN_IDENTITY", "admin")
TRANSITION_POLICY = os.getenv("TRANSITION_POLICY", "permissive")  # permissive | stage-roles
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )

"""
Hash links for history events and small input checks.

Each event's hash covers the previous event's hash, the event payload and
its timestamp, so editing or removing any event breaks every later link.
"""
import hashlib
import json
from typing import Any, Dict, Iterable, Optional

GENESIS = "GENESIS"  # prev_hash of the first event of every product


def compute_hash(prev_hash: str, payload: Dict[str, Any], timestamp: int) -> str:
    link = {"prev_hash": prev_hash, "payload": payload, "timestamp": timestamp}
    encoded = json.dumps(link, sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def verify_chain(links: Iterable[Dict[str, Any]]) -> bool:
    """True if every link points at its predecessor and its hash recomputes."""
    expected_prev = GENESIS
    for link in links:
        if link["prev_hash"] != expected_prev:
            return False
        if link["hash"] != compute_hash(expected_prev, link["payload"], link["timestamp"]):
            return False
        expected_prev = link["hash"]
    return True


def require_text(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""

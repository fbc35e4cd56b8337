"""
Disposable/temporary email domain blocklist, checked at registration.
"""
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

BLOCKLIST_PATH = Path(__file__).resolve().parent.parent / "data" / "disposable_email_blocklist.txt"

_blocklist: set[str] = set()


def _load_blocklist() -> set[str]:
    global _blocklist
    if _blocklist:
        return _blocklist
    if not BLOCKLIST_PATH.is_file():
        logger.warning("Disposable email blocklist not found at %s; no domains will be blocked.", BLOCKLIST_PATH)
        return _blocklist
    domains = set()
    for line in BLOCKLIST_PATH.read_text(encoding="utf-8").splitlines():
        line = line.strip().lower()
        if line and not line.startswith("#"):
            domains.add(line)
    logger.info("Disposable email blocklist loaded: %s domains", len(domains))
    _blocklist = domains
    return _blocklist


def ensure_blocklist_loaded() -> int:
    """Load the blocklist at startup. Returns the number of domains."""
    return len(_load_blocklist())


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_disposable_email(email: str) -> bool:
    email = normalize_email(email)
    if "@" not in email:
        return False
    return email.rsplit("@", 1)[-1] in _load_blocklist()

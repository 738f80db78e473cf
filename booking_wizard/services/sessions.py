import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from booking_wizard.core.config import settings
from booking_wizard.core.metrics import active_wizards
from booking_wizard.services.wizard import BookingWizard

logger = logging.getLogger(__name__)


@dataclass
class WizardSession:
    id: str
    wizard: BookingWizard
    last_seen: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_seen = time.monotonic()


class WizardRegistry:
    """Open wizards of this process, keyed by an opaque id."""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.WIZARD_TTL
        self._sessions: Dict[str, WizardSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, wizard: BookingWizard) -> WizardSession:
        self.prune()
        session = WizardSession(id=secrets.token_urlsafe(16), wizard=wizard)
        self._sessions[session.id] = session
        active_wizards.inc()
        return session

    def get(self, session_id: str) -> Optional[WizardSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            session.touch()
        return session

    def discard(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.wizard.close()
        active_wizards.dec()
        return True

    def prune(self) -> int:
        cutoff = time.monotonic() - self.ttl_seconds
        stale = [sid for sid, s in self._sessions.items() if s.last_seen < cutoff and not s.wizard.is_submitting]
        for sid in stale:
            self.discard(sid)
        if stale:
            logger.info(f"Dropped {len(stale)} abandoned booking wizards")
        return len(stale)

    def clear(self) -> None:
        for sid in list(self._sessions):
            self.discard(sid)


registry = WizardRegistry()

def get_registry() -> WizardRegistry:
    return registry

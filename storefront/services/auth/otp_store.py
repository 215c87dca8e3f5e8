# storefront/services/auth/otp_store.py
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

OTP_MIN = 100000
OTP_MAX = 999999


@dataclass(frozen=True)
class OTPEntry:
    code: str
    expires_at: float  # epoch seconds

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


def generate_code() -> str:
    """Uniform 6-digit code from the OS CSPRNG"""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class OTPLedger:
    """
    In-memory store of outstanding one-time codes, keyed by account id
    (phone channel) or e-mail address (email channel).

    Nothing survives a restart. One instance is owned per channel per
    process and handed to the channel service that uses it.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, OTPEntry] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def put(self, key: str, ttl: float) -> str:
        """Store a fresh code for ``key``, replacing any pending one"""
        entry = OTPEntry(code=generate_code(), expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry
        return entry.code

    def peek(self, key: str) -> Optional[OTPEntry]:
        with self._lock:
            return self._entries.get(key)

    def delete(self, key: str, entry: Optional[OTPEntry] = None) -> bool:
        """Remove the entry for ``key``.

        When ``entry`` is given, only that exact entry is removed, so a code
        regenerated in the meantime survives. Returns True if something was removed.
        """
        with self._lock:
            current = self._entries.get(key)
            if current is None or (entry is not None and current is not entry):
                return False
            del self._entries[key]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

"""One-time code ledger and password-reset verification gate.

Both sit on top of an ``ExpiringStore`` so the process-local default can be
swapped for a shared backend when the API runs as several instances.
"""
import hmac
import logging
import secrets
import string
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from app.config import settings
from app.utils.errors import ConflictError, UpstreamError

logger = logging.getLogger(__name__)

OTP_LENGTH = 6

Deliver = Callable[[str], Awaitable[Any]]


class ExpiringStore(Protocol):
    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    def get(self, key: str) -> Optional[Any]: ...

    def pop(self, key: str) -> Optional[Any]: ...

    def purge_expired(self) -> int: ...


class InMemoryExpiringStore:
    """Thread-safe dict of ``key -> value`` with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = {"value": value, "expires_at": self._clock() + ttl_seconds}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._live(key)

    def pop(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._live(key)
            self._entries.pop(key, None)
            return value

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry["expires_at"] <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _live(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if not entry:
            return None
        if entry["expires_at"] <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry["value"]


def generate_otp(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


class OtpLedger:
    """Issues and consumes short-lived numeric codes.

    At most one live code exists per (subject, purpose); issuing again
    replaces it. A code is consumed by the first successful verification.
    """

    def __init__(self, store: ExpiringStore, ttl_seconds: int = 600, wall_clock: Callable[[], float] = time.time):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._wall_clock = wall_clock
        self._lock = threading.Lock()

    @staticmethod
    def _key(subject: str, purpose: str) -> str:
        return f"otp:{purpose}:{subject}"

    def issue(self, subject: str, purpose: str) -> str:
        code = generate_otp()
        entry = {"code": code, "purpose": purpose, "issued_at": self._wall_clock()}
        self.store.set(self._key(subject, purpose), entry, self.ttl_seconds)
        logger.info("Issued %s OTP for %s", purpose, subject)
        return code

    async def issue_and_send(self, subject: str, purpose: str, deliver: Deliver) -> str:
        code = self.issue(subject, purpose)
        try:
            await deliver(code)
        except Exception as exc:
            self.discard(subject, purpose)
            logger.error("Failed to deliver %s OTP for %s: %s", purpose, subject, exc)
            if isinstance(exc, UpstreamError):
                raise
            raise UpstreamError("Could not send verification code") from exc
        return code

    def verify(self, subject: str, code: str, purpose: str) -> bool:
        key = self._key(subject, purpose)
        with self._lock:
            if not self._matches(self.store.get(key), code, purpose):
                logger.info("Rejected %s OTP for %s", purpose, subject)
                return False
            self.store.pop(key)
        logger.info("Verified %s OTP for %s", purpose, subject)
        return True

    def require(self, subject: str, code: str, purpose: str) -> None:
        if not self.verify(subject, code, purpose):
            raise ConflictError("Invalid or expired OTP")

    def verify_all(self, subject: str, codes: Dict[str, str]) -> bool:
        """Check several codes for one subject; consume them only if all match."""
        keys = {purpose: self._key(subject, purpose) for purpose in codes}
        with self._lock:
            for purpose, code in codes.items():
                if not self._matches(self.store.get(keys[purpose]), code, purpose):
                    logger.info("Rejected %s OTP for %s", purpose, subject)
                    return False
            for key in keys.values():
                self.store.pop(key)
        logger.info("Verified %s OTPs for %s", ", ".join(codes), subject)
        return True

    def discard(self, subject: str, purpose: str) -> None:
        self.store.pop(self._key(subject, purpose))

    def has_pending(self, subject: str, purpose: str) -> bool:
        return self.store.get(self._key(subject, purpose)) is not None

    @staticmethod
    def _matches(entry: Optional[dict], code: str, purpose: str) -> bool:
        if not entry or entry.get("purpose") != purpose:
            return False
        if not isinstance(code, str):
            return False
        return hmac.compare_digest(entry["code"], code)


class VerificationGate:
    """Remembers that a subject passed an OTP check and may reset a password."""

    def __init__(self, store: ExpiringStore, ttl_seconds: int = 600):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(subject: str) -> str:
        return f"gate:{subject}"

    def mark(self, subject: str) -> None:
        self.store.set(self._key(subject), True, self.ttl_seconds)

    def is_open(self, subject: str) -> bool:
        return bool(self.store.get(self._key(subject)))

    def consume(self, subject: str) -> bool:
        """Close the gate; True only for the caller that found it open."""
        return bool(self.store.pop(self._key(subject)))


otp_store = InMemoryExpiringStore()
otp_ledger = OtpLedger(otp_store, ttl_seconds=settings.OTP_TTL_SECONDS)
reset_gate = VerificationGate(otp_store, ttl_seconds=settings.OTP_TTL_SECONDS)


def get_otp_ledger() -> OtpLedger:
    return otp_ledger


def get_reset_gate() -> VerificationGate:
    return reset_gate

"""Testing helpers."""

from typing import Dict, List, Optional, Tuple
from contextlib import contextmanager
import os
import shutil
import tempfile
import threading

from ..domain import OtpContext, OtpPurpose
from ..exceptions import AccountExists, CacheUnavailable, DeliveryFailed, \
    ProviderAuthenticationFailed, ProviderUnavailable
from ..services.datastore import UserStore
from ..services.identity_provider import IdentityProvider


class FakeClock(object):
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1000000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeCache(object):
    """In-memory stand-in for :class:`.CacheStore` with expiring keys."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock or FakeClock()
        self.down = False
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _check(self) -> None:
        if self.down:
            raise CacheUnavailable('Cache unavailable: connection refused')

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] is not None and entry[1] <= self.clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        self._check()
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, ttl: int) -> None:
        self._check()
        with self._lock:
            self._data[key] = (str(value), self.clock() + ttl)

    def delete(self, key: str) -> bool:
        self._check()
        with self._lock:
            entry = self._live(key)
            self._data.pop(key, None)
            return entry is not None

    def incr(self, key: str) -> int:
        self._check()
        with self._lock:
            entry = self._live(key)
            value = int(entry[0]) + 1 if entry else 1
            self._data[key] = (str(value), entry[1] if entry else None)
            return value

    def expire(self, key: str, ttl: int) -> None:
        self._check()
        with self._lock:
            entry = self._live(key)
            if entry:
                self._data[key] = (entry[0], self.clock() + ttl)

    def ttl(self, key: str) -> int:
        self._check()
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return int(round(entry[1] - self.clock()))

    def pop(self, key: str) -> Optional[str]:
        self._check()
        with self._lock:
            entry = self._live(key)
            self._data.pop(key, None)
            return entry[0] if entry else None

    def delete_if_equals(self, key: str, value: str) -> bool:
        self._check()
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[0] != value:
                return False
            del self._data[key]
            return True


class RecordingMail(object):
    """Collects OTP messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, OtpPurpose, Optional[OtpContext]]] = []
        self.fail = False

    def send_otp(self, email: str, code: str, purpose: OtpPurpose,
                 context: Optional[OtpContext] = None) -> None:
        if self.fail:
            raise DeliveryFailed('Could not send verification email')
        self.sent.append((email, code, purpose, context))

    def last_code(self, email: str) -> str:
        """Get the most recent code sent to ``email``."""
        for sent_to, code, _, _ in reversed(self.sent):
            if sent_to == email:
                return code
        raise AssertionError(f'No code sent to {email}')


class FakeProvider(IdentityProvider):
    """Identity provider with accounts held in a dict."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Tuple[str, str]] = {}
        self.available = True
        self._next = 0

    def add(self, email: str, password: str) -> str:
        self._next += 1
        subject_id = f'subject-{self._next}'
        self.accounts[email] = (subject_id, password)
        return subject_id

    def create_account(self, email: str, password: str) -> str:
        if not self.available:
            raise ProviderUnavailable('Identity provider unavailable')
        if email in self.accounts:
            raise AccountExists('User already registered')
        return self.add(email, password)

    def authenticate(self, email: str, password: str) -> str:
        if not self.available:
            raise ProviderUnavailable('Identity provider unavailable')
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise ProviderAuthenticationFailed('Invalid login credentials')
        return account[0]


@contextmanager
def temporary_store():
    """Provide a fresh :class:`.UserStore` backed by a SQLite file."""
    workdir = tempfile.mkdtemp()
    store = UserStore.from_uri(f'sqlite:///{os.path.join(workdir, "test.db")}')
    store.create_all()
    try:
        yield store
    finally:
        store.engine.dispose()
        shutil.rmtree(workdir, ignore_errors=True)

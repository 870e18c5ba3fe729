"""Reference-counted multicast reception resource."""

from __future__ import annotations

from collections.abc import Callable
import threading
from types import TracebackType

from .const import LOGGER


class MulticastLock:
    """Keep multicast reception enabled while at least one holder needs it.

    Some platforms drop multicast traffic unless the application holds a lock. The
    on_acquire and on_release hooks bridge to such a platform API and fire only on the
    first acquisition and the last release.
    """

    def __init__(
        self,
        tag: str = "atvcontrol-mdns",
        on_acquire: Callable[[], None] | None = None,
        on_release: Callable[[], None] | None = None,
    ) -> None:
        self.tag = tag
        self._on_acquire = on_acquire
        self._on_release = on_release
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        """Number of outstanding acquisitions."""
        return self._count

    @property
    def held(self) -> bool:
        return self._count > 0

    def acquire(self) -> None:
        """Acquire once. The count only changes if the on_acquire hook succeeds."""
        with self._lock:
            if self._count == 0 and self._on_acquire:
                self._on_acquire()
            self._count += 1
            LOGGER.debug("Acquired multicast lock %s (count: %s)", self.tag, self._count)

    def release(self) -> None:
        """Release one acquisition.

        :raises RuntimeError: if the lock isn't held.
        """
        with self._lock:
            if self._count == 0:
                raise RuntimeError(f"Multicast lock {self.tag} released too many times")
            self._count -= 1
            LOGGER.debug("Released multicast lock %s (count: %s)", self.tag, self._count)
            if self._count == 0 and self._on_release:
                self._on_release()

    def __enter__(self) -> MulticastLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

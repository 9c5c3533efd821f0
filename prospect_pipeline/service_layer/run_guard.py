# prospect_pipeline/service_layer/run_guard.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from ..errors import ReentrancyRejection


class RunGuard:
    """
    Single-flight flag owned by one worker instance.

    Check-and-set happens without an await in between, so it is atomic under
    asyncio. It only covers this process: two processes sharing a database
    each get their own guard (row claims stay atomic regardless).
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def claim(self) -> Iterator[None]:
        if self._active:
            raise ReentrancyRejection(f"{self.name} is already running")
        self._active = True
        try:
            yield
        finally:
            self._active = False

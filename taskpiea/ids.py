"""Task identifier generation."""

from __future__ import annotations

import random
from typing import Optional, Set

from .models import ID_WIDTH, MAX_ID, MIN_ID


class IdSpaceExhausted(RuntimeError):
    """Raised when every identifier in the space has been claimed."""


def format_id(value: int) -> str:
    """Format ``value`` as a zero-padded uppercase hex task id."""
    return f"{value:0{ID_WIDTH}X}"


class IdGenerator:
    """Hands out task ids that are unique within one claimed-id set.

    The generator owns the set it checks against, so one instance is
    meant to live exactly as long as a single parse.
    """

    def __init__(
        self,
        used_ids: Optional[Set[str]] = None,
        *,
        max_id: int = MAX_ID,
        rng: Optional[random.Random] = None,
    ):
        if not MIN_ID <= max_id <= MAX_ID:
            raise ValueError(f"max_id must be within [{MIN_ID}, {MAX_ID}], got {max_id}")
        self.used_ids: Set[str] = used_ids if used_ids is not None else set()
        self.max_id = max_id
        self._rng = rng or random.Random()

    @property
    def capacity(self) -> int:
        return self.max_id - MIN_ID + 1

    def is_claimed(self, task_id: str) -> bool:
        return task_id in self.used_ids

    def claim(self, task_id: str) -> bool:
        """Claim an existing id. Returns False if it was already taken."""
        if task_id in self.used_ids:
            return False
        self.used_ids.add(task_id)
        return True

    def generate(self) -> str:
        """Sample until an unclaimed id turns up, then claim it."""
        if self._space_exhausted():
            raise IdSpaceExhausted(f"All {self.capacity} task ids are in use")
        while True:
            candidate = format_id(self._rng.randint(MIN_ID, self.max_id))
            if candidate not in self.used_ids:
                self.used_ids.add(candidate)
                return candidate

    def _space_exhausted(self) -> bool:
        if len(self.used_ids) < self.capacity:
            return False
        # Adopted ids may lie outside a shrunk space, so count only real members.
        in_space = sum(
            1
            for task_id in self.used_ids
            if _parse_hex(task_id) is not None and MIN_ID <= _parse_hex(task_id) <= self.max_id
        )
        return in_space >= self.capacity


def _parse_hex(task_id: str) -> Optional[int]:
    try:
        return int(task_id, 16)
    except ValueError:
        return None

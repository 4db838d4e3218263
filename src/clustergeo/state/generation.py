"""Fetch generation tokens."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True, slots=True)
class FetchGeneration:
    """Identifies one fetch cycle. Later cycles compare greater."""

    value: int

    def __str__(self) -> str:
        return f"gen-{self.value}"


class GenerationCounter:
    """Issues monotonically increasing :class:`FetchGeneration` tokens."""

    def __init__(self) -> None:
        self._current = FetchGeneration(0)

    @property
    def current(self) -> FetchGeneration:
        return self._current

    def advance(self) -> FetchGeneration:
        self._current = FetchGeneration(self._current.value + 1)
        return self._current

    def is_current(self, generation: FetchGeneration) -> bool:
        return generation == self._current

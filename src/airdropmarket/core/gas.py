from __future__ import annotations

from airdropmarket.protocol.errors import OutOfGasError


class GasMeter:
    """
    Tracks gas used against a fixed limit.

    A meter that runs out is marked exhausted and reports its whole limit
    as used, like a call frame that burns all the gas it was given.
    """

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError(f"Gas limit must be non-negative, got {limit}")
        self._limit = limit
        self._used = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return self._limit - self._used

    def charge(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Cannot charge negative gas: {amount}")
        if self._used + amount > self._limit:
            self._used = self._limit
            raise OutOfGasError(self._limit, amount)
        self._used += amount

"""
Daily Transfer Aggregation Module

Tracks, per account and calendar day, the running total of outbound
transfers that have committed. Totals are only ever added to; a new date
starts a new record. Records are never expired.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Dict, Iterator, Tuple
import threading

from .logging_config import get_logger
from .money import ZERO, require_positive_amount

DailyKey = Tuple[str, date]


class DailyTransferAggregator:
    """
    Running outbound totals keyed by (account number, date).

    Keys are guarded by a fixed pool of striped re-entrant locks: updates to
    the same key are serialized, unrelated keys rarely contend.
    """

    def __init__(self, stripes: int = 64):
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._totals: Dict[DailyKey, Decimal] = {}
        self._locks = [threading.RLock() for _ in range(stripes)]
        self.logger = get_logger("ledger.daily_limits")

    def _lock_for(self, key: DailyKey) -> threading.RLock:
        return self._locks[hash(key) % len(self._locks)]

    @contextmanager
    def hold(self, account_number: str, on_date: date) -> Iterator[None]:
        """
        Hold the lock of one (account, date) key.

        Lets a caller check the total, move money and record the transfer
        as a single step. The lock is re-entrant, so record_outbound and
        get_total may be called inside the block.
        """
        with self._lock_for((account_number, on_date)):
            yield

    def record_outbound(self, account_number: str, amount, on_date: date) -> None:
        """
        Add a committed transfer to the day's total

        Raises:
            InvalidArgument: If the amount is not a positive 2-place decimal
        """
        amt = require_positive_amount(amount)
        key = (account_number, on_date)
        with self._lock_for(key):
            total = self._totals.get(key, ZERO) + amt
            self._totals[key] = total

        self.logger.debug(
            f"Outbound total for {account_number} on {on_date.isoformat()} is now {total}"
        )

    def get_total(self, account_number: str, on_date: date) -> Decimal:
        """Total transferred out on a date (0.00 if nothing recorded)"""
        key = (account_number, on_date)
        with self._lock_for(key):
            return self._totals.get(key, ZERO)

    def __len__(self) -> int:
        return len(self._totals)

# Overview: Invoice number generation for sales.

"""
Invoice numbers look like INV-YYYYMMDD-xxxxxxxx (UTC date, 8 hex chars).

The suffix is a per-process counter run through a fixed odd multiplier
modulo 2**32. Multiplication by an odd number is a bijection on 32-bit
integers, so one process never repeats a suffix within 2**32 numbers,
while consecutive invoices still look unrelated. The random starting
offset keeps separate processes apart. The sales.invoice_number unique
constraint catches the rest (DuplicateInvoiceError).
"""

from __future__ import annotations

import secrets
import threading
from datetime import date

from posapi.time_utils import utcnow

INVOICE_PREFIX = "INV"

_MASK = 0xFFFFFFFF
_MULTIPLIER = 0x9E3779B1  # odd


class InvoiceNumberGenerator:
    def __init__(self, offset: int | None = None):
        self._offset = secrets.randbits(32) if offset is None else offset & _MASK
        self._counter = 0
        self._lock = threading.Lock()

    def _next_suffix(self) -> str:
        with self._lock:
            n = self._counter
            self._counter += 1
        return f"{((self._offset + n) * _MULTIPLIER) & _MASK:08x}"

    def next(self, day: date | None = None) -> str:
        day = day or utcnow().date()
        return f"{INVOICE_PREFIX}-{day:%Y%m%d}-{self._next_suffix()}"


_generator = InvoiceNumberGenerator()


def next_invoice_number(day: date | None = None) -> str:
    """Return a new invoice number for the given (default: current UTC) day."""
    return _generator.next(day)

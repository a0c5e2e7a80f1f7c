"""
Invoice numbers: INV-YYYYMMDD-<8 hex>, never repeated by one process.
"""

import re
import threading
from datetime import date

from posapi.services.invoice_service import InvoiceNumberGenerator, next_invoice_number

INVOICE_RE = re.compile(r"^INV-\d{8}-[0-9a-f]{8}$")


def test_format():
    number = next_invoice_number()
    assert INVOICE_RE.match(number), number


def test_date_component_uses_given_day():
    number = next_invoice_number(date(2024, 1, 15))
    assert number.startswith("INV-20240115-")


def test_ten_thousand_numbers_are_distinct():
    numbers = [next_invoice_number(date(2024, 1, 15)) for _ in range(10_000)]
    assert len(set(numbers)) == 10_000


def test_wraparound_offset_stays_distinct():
    generator = InvoiceNumberGenerator(offset=0xFFFFFFFF - 10)
    numbers = [generator.next(date(2024, 1, 15)) for _ in range(100)]
    assert len(set(numbers)) == 100
    assert all(INVOICE_RE.match(n) for n in numbers)


def test_distinct_across_threads():
    generator = InvoiceNumberGenerator()
    results = []
    lock = threading.Lock()

    def worker():
        local = [generator.next(date(2024, 1, 15)) for _ in range(2_500)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 10_000
    assert len(set(results)) == 10_000

"""
Certificate numbering: fiscal-year scoped serial numbers and random record IDs.
"""

import json
import logging
import os
import random
import string
import tempfile
import threading
import time
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Protocol, Set

from pydantic import ValidationError as PydanticValidationError

from .exceptions import CounterStoreError, GenerationError, SerialAllocationError
from .models import CertificateNumber, FiscalCounter

logger = logging.getLogger(__name__)


def fiscal_year_label(day: date) -> str:
    """
    Returns the April-March fiscal year label of a date.

    January to March belong to the year that started the previous April.

    Args:
        day: Calendar date

    Returns:
        str: Label of the form YY-YY, e.g. "23-24" for 2024-03-15
    """
    start_year = day.year - 1 if day.month < 4 else day.year
    return f"{start_year % 100:02d}-{(start_year + 1) % 100:02d}"


class CounterStore(Protocol):
    """Persistence port of the fiscal counter."""

    def load(self) -> Optional[FiscalCounter]:
        ...

    def save(self, counter: FiscalCounter) -> None:
        ...


class JsonCounterStore:
    """Fiscal counter kept in a JSON file {"financialYear": "YY-YY", "counter": N}."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[FiscalCounter]:
        """
        Reads the counter file.

        Returns:
            Optional[FiscalCounter]: Stored counter or None if the file does not exist

        Raises:
            CounterStoreError: If the file cannot be read or has an unexpected shape
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return FiscalCounter.model_validate(data)
        except (OSError, ValueError, PydanticValidationError) as e:
            raise CounterStoreError(f"Cannot read counter file {self.path}: {e}")

    def save(self, counter: FiscalCounter) -> None:
        """
        Replaces the counter file atomically and flushes it to disk.

        Raises:
            CounterStoreError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".counter-", suffix=".tmp", dir=self.path.parent)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(counter.to_json_dict(), f)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise CounterStoreError(f"Cannot write counter file {self.path}: {e}")


class SerialAllocator:
    """Issues certificate numbers scoped to the current fiscal year."""

    def __init__(self, store: CounterStore, prefix: str = "RPS/CERT",
                 strict: bool = False, clock: Callable[[], date] = date.today):
        """
        Args:
            store: Counter persistence port
            prefix: Certificate number prefix
            strict: Raise instead of logging when the counter cannot be persisted
            clock: Source of the current date
        """
        self.store = store
        self.prefix = prefix
        self.strict = strict
        self.clock = clock
        # Read-modify-write of the counter is serialized within the process
        self._lock = threading.Lock()

    def current_fiscal_year(self) -> str:
        """Returns the fiscal year label of today."""
        return fiscal_year_label(self.clock())

    def allocate(self) -> CertificateNumber:
        """
        Allocates the next certificate number.

        The counter restarts at 1 when the fiscal year changes. Persistence
        failures are logged and the number is still returned unless the
        allocator is strict.

        Returns:
            CertificateNumber: Newly issued number

        Raises:
            SerialAllocationError: In strict mode, if the counter cannot be read or written
        """
        with self._lock:
            fiscal_year = self.current_fiscal_year()

            try:
                current = self.store.load()
            except CounterStoreError as e:
                logger.error(f"Error reading certificate counter: {e}")
                if self.strict:
                    raise SerialAllocationError(str(e))
                # Nothing is written back over an unreadable counter
                return CertificateNumber(fiscal_year=fiscal_year, sequence=1, prefix=self.prefix)

            if current is None:
                sequence = 1
                logger.info(f"Starting certificate counter for fiscal year {fiscal_year}")
            elif current.fiscal_year == fiscal_year:
                sequence = current.sequence + 1
            else:
                sequence = 1
                logger.info(
                    f"Fiscal year changed from {current.fiscal_year} to {fiscal_year}, "
                    f"certificate counter reset"
                )

            try:
                self.store.save(FiscalCounter(fiscal_year=fiscal_year, sequence=sequence))
            except CounterStoreError as e:
                logger.error(f"Error saving certificate counter: {e}")
                if self.strict:
                    raise SerialAllocationError(str(e))

            number = CertificateNumber(fiscal_year=fiscal_year, sequence=sequence, prefix=self.prefix)
            logger.info(f"Allocated certificate number {number}")
            return number

    def peek(self) -> Optional[FiscalCounter]:
        """Returns the stored counter without changing it."""
        return self.store.load()

    def reset(self, fiscal_year: str, sequence: int) -> FiscalCounter:
        """
        Overwrites the stored counter; the next allocation issues sequence + 1.

        Args:
            fiscal_year: Fiscal year label YY-YY
            sequence: Last issued sequence

        Returns:
            FiscalCounter: Stored counter
        """
        counter = FiscalCounter(fiscal_year=fiscal_year, sequence=sequence)
        with self._lock:
            self.store.save(counter)
        logger.info(f"Certificate counter set to {fiscal_year}/{sequence}")
        return counter


class RecordIdGenerator:
    """Generator of opaque record IDs of the form PREFIX-<epoch ms>-<9 base36 chars>."""

    def __init__(self):
        self.characters = string.ascii_lowercase + string.digits
        self.max_attempts = 1000

    def generate(self, prefix: str, existing_ids: Set[str] = None) -> str:
        """
        Generates a unique record ID.

        Args:
            prefix: ID prefix, CERT or SERV
            existing_ids: IDs already in use

        Returns:
            str: Unique ID

        Raises:
            GenerationError: If no unique ID was found
        """
        if existing_ids is None:
            existing_ids = set()

        for attempt in range(self.max_attempts):
            record_id = f"{prefix}-{int(time.time() * 1000)}-{self._random_suffix()}"
            if record_id not in existing_ids:
                return record_id

        raise GenerationError(f"Could not generate a unique {prefix} ID in {self.max_attempts} attempts")

    def certificate_id(self, existing_ids: Set[str] = None) -> str:
        return self.generate("CERT", existing_ids)

    def service_id(self, existing_ids: Set[str] = None) -> str:
        return self.generate("SERV", existing_ids)

    def _random_suffix(self) -> str:
        return ''.join(random.choices(self.characters, k=9))


def create_allocator(settings) -> SerialAllocator:
    """Builds the allocator over the configured counter file."""
    return SerialAllocator(
        JsonCounterStore(settings.counter_file),
        prefix=settings.certificate_prefix,
        strict=settings.strict_numbering
    )

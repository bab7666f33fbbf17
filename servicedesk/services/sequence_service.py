"""
Sequence service - per-owner, per-year document numbering.

Numbers come from a (owner_id, kind, year) counter whose logical starting
value is 99, so the first number issued in a scope is 100. Each allocation
is a compare-and-set against the stored counter. Writers that lose a race
re-read and try again, up to a bounded number of attempts. Gaps are
acceptable (a number can be allocated and never used); duplicates are not.
"""
import logging
from datetime import date
from typing import Iterable, Optional, Union

from sqlalchemy import insert, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from servicedesk.blueprints.metrics import folios_allocated_total, sequence_conflicts_total
from servicedesk.exceptions import SequenceUnavailable
from servicedesk.models import DocumentSequence, DocumentKind
from servicedesk.utils.formatters import parse_folio

logger = logging.getLogger(__name__)

INITIAL_LAST_VALUE = 99
DEFAULT_MAX_ATTEMPTS = 5

Kind = Union[DocumentKind, str]


def _kind_value(kind: Kind) -> str:
    return kind.value if isinstance(kind, DocumentKind) else str(kind)


class SqlSequenceStore:
    """
    Counter storage on the document_sequence table.

    A successful write commits immediately, like a database sequence:
    the number is spent whether or not the caller's later work succeeds.
    Call the allocator before staging other changes on the same session.
    """

    def __init__(self, session: Session):
        self.session = session

    def read_last_sequence(self, owner_id: str, kind: str, year: int) -> Optional[int]:
        """Last issued value for the scope, or None if the scope is new."""
        return self.session.query(DocumentSequence.last_value).filter(
            DocumentSequence.owner_id == owner_id,
            DocumentSequence.kind == kind,
            DocumentSequence.year == year
        ).scalar()

    def write_sequence(self, owner_id: str, kind: str, year: int,
                       expected: Optional[int], value: int) -> bool:
        """
        Store value if the counter still holds expected.

        expected=None means the scope must not exist yet. Returns False on
        conflict (another writer got there first). Database errors other
        than the unique-scope violation propagate.
        """
        if expected is None:
            try:
                self.session.execute(
                    insert(DocumentSequence).values(
                        owner_id=owner_id, kind=kind, year=year, last_value=value
                    )
                )
            except IntegrityError:
                self.session.rollback()
                return False
            self.session.commit()
            return True

        result = self.session.execute(
            update(DocumentSequence)
            .where(
                DocumentSequence.owner_id == owner_id,
                DocumentSequence.kind == kind,
                DocumentSequence.year == year,
                DocumentSequence.last_value == expected
            )
            .values(last_value=value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            return False
        self.session.commit()
        return True


class SequenceAllocator:
    """Hands out strictly increasing numbers per (owner, kind, year)."""

    def __init__(self, store, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        self.store = store
        self.max_attempts = max_attempts

    def _read_last(self, owner_id: str, kind: str, year: int) -> Optional[int]:
        try:
            return self.store.read_last_sequence(owner_id, kind, year)
        except DBAPIError as e:
            logger.error(f"[FOLIO] Store unavailable reading {kind}/{year} for owner {owner_id}: {e}")
            raise SequenceUnavailable() from e

    def _write(self, owner_id: str, kind: str, year: int, expected: Optional[int], value: int) -> bool:
        try:
            return self.store.write_sequence(owner_id, kind, year, expected, value)
        except DBAPIError as e:
            logger.error(f"[FOLIO] Store unavailable writing {kind}/{year} for owner {owner_id}: {e}")
            raise SequenceUnavailable() from e

    def next_number(self, owner_id: str, kind: Kind, year: Optional[int] = None) -> int:
        """
        Allocate the next number for the scope.

        Raises:
            SequenceUnavailable: if the store cannot be reached, or every
                attempt lost a race. Nothing is committed in either case.
        """
        if not owner_id:
            raise ValueError('owner_id es requerido')
        kind = _kind_value(kind)
        year = year or date.today().year

        for attempt in range(1, self.max_attempts + 1):
            last = self._read_last(owner_id, kind, year)
            value = (INITIAL_LAST_VALUE if last is None else last) + 1
            if self._write(owner_id, kind, year, last, value):
                folios_allocated_total.labels(kind=kind).inc()
                logger.info(f"[FOLIO] Allocated {kind}-{year}-{value} for owner {owner_id}")
                return value

            sequence_conflicts_total.labels(kind=kind).inc()
            logger.warning(
                f"[FOLIO] Conflict on {kind}/{year} for owner {owner_id} "
                f"(attempt {attempt}/{self.max_attempts})"
            )

        raise SequenceUnavailable(
            'El folio está siendo asignado por otra operación. Intenta de nuevo.'
        )

    def peek_next_number(self, owner_id: str, kind: Kind, year: Optional[int] = None) -> int:
        """
        Suggested next number, without allocating it.

        Only for display. It must be replaced by next_number() on save.
        Falls back to the first number of the scope when the store is down.
        """
        kind = _kind_value(kind)
        year = year or date.today().year
        try:
            last = self.store.read_last_sequence(owner_id, kind, year)
        except DBAPIError as e:
            logger.warning(f"[FOLIO] Could not read {kind}/{year} for placeholder: {e}")
            last = None
        return (INITIAL_LAST_VALUE if last is None else last) + 1

    def ensure_at_least(self, owner_id: str, kind: Kind, year: int, floor_value: int) -> int:
        """
        Raise the scope's counter to floor_value if it is below it.

        Never lowers a counter. Returns the resulting last value.
        """
        kind = _kind_value(kind)
        for attempt in range(1, self.max_attempts + 1):
            last = self._read_last(owner_id, kind, year)
            current = INITIAL_LAST_VALUE if last is None else last
            if current >= floor_value:
                return current
            if self._write(owner_id, kind, year, last, floor_value):
                logger.info(f"[FOLIO] Seeded {kind}/{year} for owner {owner_id} at {floor_value}")
                return floor_value
            sequence_conflicts_total.labels(kind=kind).inc()

        raise SequenceUnavailable()


def sync_sequence_from_folios(allocator: SequenceAllocator, owner_id: str, kind: Kind,
                              year: int, folios: Iterable[str], prefix: Optional[str] = None) -> int:
    """
    Seed a scope from folios that already exist, so new numbers never
    collide with them. Folios for other prefixes or years are ignored.
    prefix defaults to the kind code.
    """
    kind = _kind_value(kind)
    prefix = (prefix or kind).upper()
    highest = INITIAL_LAST_VALUE
    for folio in folios:
        parsed = parse_folio(folio)
        if parsed and parsed[0] == prefix and parsed[1] == year:
            highest = max(highest, parsed[2])
    return allocator.ensure_at_least(owner_id, kind, year, highest)


def get_allocator(session: Session, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> SequenceAllocator:
    """Allocator backed by the SQL store on session."""
    return SequenceAllocator(SqlSequenceStore(session), max_attempts=max_attempts)

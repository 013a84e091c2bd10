"""Lazily buffered, filterable, replayable result sets of catalog entities."""

from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

from .entities import DEFAULT_COLUMNS

T = TypeVar("T")

Predicate = Callable[[T], bool]
ScanValues = Callable[[T], List[Any]]


class ResultSet(Generic[T]):
    """Forward iterable sequence of entities of one type.

    Rows are pulled from ``rows`` on demand and kept in a buffer, so
    ``reset()`` replays them without touching the source again. A filter
    installed with ``set_filter()`` is applied on every ``next()`` and
    ``len()`` call. Column headers and the row projector only affect how
    the set is rendered.

    Typical use::

        with reader.tables(Filter(schema="main")) as res:
            while res.next():
                table = res.get()
    """

    def __init__(
        self,
        entity_type: Type[T],
        rows: Iterable[T],
        on_close: Optional[Callable[[], None]] = None,
    ):
        """Initialize result set.

        Args:
            entity_type: Class of every row
            rows: Source rows; may be a generator over an open cursor
            on_close: Called once when the set is closed
        """
        self.entity_type = entity_type
        self._source: Optional[Iterator[T]] = iter(rows)
        self._buffer: List[T] = []
        self._position = -1
        self._filter: Optional[Predicate] = None
        self._on_close = on_close
        self._closed = False
        defaults = DEFAULT_COLUMNS.get(entity_type, [])
        self._columns = [header for header, _ in defaults]
        self._attributes = [attr for _, attr in defaults]
        self._scan_values: Optional[ScanValues] = None

    @classmethod
    def of(cls, entity_type: Type[T], rows: Sequence[T]) -> "ResultSet[T]":
        """Build a result set over already materialized rows."""
        return cls(entity_type, list(rows))

    def next(self) -> bool:
        """Advance to the next row passing the filter.

        Returns:
            True if a row is available through ``get()``
        """
        while True:
            candidate = self._position + 1
            if not self._fetch(candidate):
                self._position = len(self._buffer)
                return False
            self._position = candidate
            if self._accepts(self._buffer[candidate]):
                return True

    def get(self) -> T:
        """Return the current row."""
        if self._position < 0 or self._position >= len(self._buffer):
            raise IndexError("no current row; call next() first")
        return self._buffer[self._position]

    def len(self) -> int:
        """Count rows passing the current filter, buffering the whole source."""
        self._drain()
        count = 0
        for row in self._buffer:
            if self._accepts(row):
                count += 1
        return count

    def __len__(self) -> int:
        return self.len()

    def set_filter(self, predicate: Optional[Predicate]) -> None:
        """Install a client-side row predicate, replacing any previous one."""
        self._filter = predicate

    def reset(self) -> None:
        """Rewind to the first buffered row; the filter is preserved."""
        self._position = -1

    def close(self) -> None:
        """Release the underlying cursor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._source = None
        if self._on_close is not None:
            self._on_close()

    def is_closed(self) -> bool:
        return self._closed

    def set_columns(self, columns: List[str]) -> None:
        """Set column headers used when rendering."""
        self._columns = list(columns)

    def columns(self) -> List[str]:
        return list(self._columns)

    def set_scan_values(self, scan_values: ScanValues) -> None:
        """Set the projector turning an entity into a row of values."""
        self._scan_values = scan_values

    def scan_values(self, row: T) -> List[Any]:
        """Project a row into rendered values."""
        if self._scan_values is not None:
            return self._scan_values(row)
        return [getattr(row, attr) for attr in self._attributes]

    def __iter__(self) -> Iterator[T]:
        while self.next():
            yield self.get()

    def __enter__(self) -> "ResultSet[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return (
            f"ResultSet({self.entity_type.__name__}, "
            f"buffered={len(self._buffer)}, closed={self._closed})"
        )

    def _accepts(self, row: T) -> bool:
        if self._filter is None:
            return True
        return bool(self._filter(row))

    def _fetch(self, index: int) -> bool:
        """Make sure the buffer holds ``index``; False when the source ran dry."""
        while index >= len(self._buffer):
            if self._source is None:
                return False
            try:
                self._buffer.append(next(self._source))
            except StopIteration:
                self._source = None
                return False
        return True

    def _drain(self) -> None:
        if self._source is None:
            return
        self._buffer.extend(self._source)
        self._source = None

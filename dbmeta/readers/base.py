"""Base class for readers backed by a live database connection."""

import logging
from abc import abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar

from ..metadata.errors import QueryFailedError
from ..metadata.readers import MetadataReader
from ..metadata.resultset import ResultSet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Conditions:
    """Collects WHERE clauses and their parameters for a catalog query."""

    def __init__(self, placeholder: str):
        self.placeholder = placeholder
        self.clauses: List[str] = []
        self.params: List[Any] = []

    def add(self, clause: str, *params: Any) -> "Conditions":
        self.clauses.append(clause)
        self.params.extend(params)
        return self

    def like(self, column: str, pattern: str) -> "Conditions":
        """Restrict ``column`` to a LIKE pattern; empty patterns are ignored."""
        if pattern:
            self.add(f"{column} LIKE {self.placeholder} ESCAPE '\\'", pattern)
        return self

    def equals(self, column: str, value: str) -> "Conditions":
        if value:
            self.add(f"{column} = {self.placeholder}", value)
        return self

    def any_of(self, column: str, values: Sequence[str]) -> "Conditions":
        if values:
            marks = ", ".join([self.placeholder] * len(values))
            self.add(f"{column} IN ({marks})", *values)
        return self

    def none_of(self, column: str, values: Sequence[str]) -> "Conditions":
        if values:
            marks = ", ".join([self.placeholder] * len(values))
            self.add(f"{column} NOT IN ({marks})", *values)
        return self

    def sql(self) -> str:
        if not self.clauses:
            return "TRUE"
        return "\n  AND ".join(self.clauses)


class DatabaseReader(MetadataReader):
    """Capability reader bound to one database connection."""

    driver = ""
    placeholder = "?"
    batch_size = 1000

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize reader.

        Args:
            name: Unique name for this data source
            config: Connection configuration dictionary
        """
        self.name = name
        self.config = config
        self.connection = None
        self._connected = False
        system_schemas = config.get("system_schemas")
        self._system_schemas = set(system_schemas) if system_schemas else None

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the database."""
        pass

    @abstractmethod
    def _open_cursor(self, sql: str, params: List[Any]) -> Tuple[Any, Callable[[], None]]:
        """Execute ``sql`` and return an open cursor with its release callback."""
        pass

    @abstractmethod
    def _driver_errors(self) -> Tuple[Type[BaseException], ...]:
        """Exception types raised by the underlying driver."""
        pass

    def default_system_schemas(self):
        if self._system_schemas is not None:
            return set(self._system_schemas)
        return self._engine_system_schemas()

    def _engine_system_schemas(self):
        return super().default_system_schemas()

    def conditions(self) -> Conditions:
        return Conditions(self.placeholder)

    def query(
        self,
        entity_type: Type[T],
        sql: str,
        params: List[Any],
        build: Callable[[tuple], T],
    ) -> ResultSet[T]:
        """Run a catalog query and stream its rows as entities.

        The query executes immediately so failures surface here; rows are
        fetched in batches while the result set is consumed.

        Raises:
            QueryFailedError: If the driver rejects the query
        """
        self.ensure_connected()
        logger.debug(f"Catalog query on {self.name}: {' '.join(sql.split())[:200]}")
        try:
            cursor, release = self._open_cursor(sql, params)
        except self._driver_errors() as e:
            logger.error(f"Catalog query failed on {self.name}: {e}")
            raise QueryFailedError(f"catalog query on {self.name} failed", e) from e
        return ResultSet(entity_type, self._rows(cursor, build), on_close=release)

    def fetch_all(self, sql: str, params: List[Any]) -> List[tuple]:
        """Run a query and return all raw rows."""
        self.ensure_connected()
        logger.debug(f"Catalog query on {self.name}: {' '.join(sql.split())[:200]}")
        try:
            cursor, release = self._open_cursor(sql, params)
        except self._driver_errors() as e:
            logger.error(f"Catalog query failed on {self.name}: {e}")
            raise QueryFailedError(f"catalog query on {self.name} failed", e) from e
        try:
            return list(cursor.fetchall())
        except self._driver_errors() as e:
            raise QueryFailedError(f"fetching rows from {self.name} failed", e) from e
        finally:
            release()

    def _rows(self, cursor: Any, build: Callable[[tuple], T]) -> Iterator[T]:
        while True:
            try:
                batch = cursor.fetchmany(self.batch_size)
            except self._driver_errors() as e:
                logger.error(f"Fetching rows failed on {self.name}: {e}")
                raise QueryFailedError(f"fetching rows from {self.name} failed", e) from e
            if not batch:
                return
            for row in batch:
                yield build(row)

    def is_connected(self) -> bool:
        """Check if the reader is connected."""
        return self._connected

    def ensure_connected(self) -> None:
        """Ensure the reader is connected.

        Raises:
            ConnectionError: If connection cannot be established
        """
        if not self.is_connected():
            self.connect()
            self._connected = True

    def __enter__(self):
        """Context manager entry."""
        self.ensure_connected()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
        self._connected = False
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


def text(value: Optional[Any]) -> str:
    """Render a nullable catalog value as a string."""
    if value is None:
        return ""
    return str(value)


def number(value: Optional[Any]) -> int:
    """Render a nullable catalog value as an integer."""
    if value is None:
        return 0
    return int(value)

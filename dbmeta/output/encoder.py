"""Aligned table rendering of result sets."""

from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional

from ..metadata.resultset import ResultSet

Emit = Callable[[str], None]
Summary = Callable[[Emit], None]


@dataclass(frozen=True)
class RenderOptions:
    """Options for one render call."""

    title: str = ""
    footer: bool = True
    null_display: str = ""
    border: bool = True

    def with_title(self, title: str) -> "RenderOptions":
        return replace(self, title=title)

    def without_footer(self) -> "RenderOptions":
        return replace(self, footer=False)


class TableEncoder:
    """Formats result sets as bordered, aligned tables."""

    def __init__(self, emit: Emit):
        self.emit = emit

    def encode(
        self,
        result_set: ResultSet,
        options: RenderOptions,
        summary: Optional[Summary] = None,
    ) -> None:
        """Render every remaining row of ``result_set``.

        Args:
            result_set: Rows to render; iterated from its current position
            options: Title, footer and cell options
            summary: Called with the sink after the table, for appendix lines
        """
        headers = result_set.columns()
        rows = self._build_rows(result_set, options)
        if options.title:
            for line in options.title.rstrip("\n").split("\n"):
                self.emit(self._center(line, headers, rows))
        for line in self._format_table(headers, rows, options.border):
            self.emit(line)
        if options.footer:
            self.emit(self._footer(len(rows)))
        if summary is not None:
            summary(self.emit)
        self.emit("")

    def _build_rows(
        self, result_set: ResultSet, options: RenderOptions
    ) -> List[List[str]]:
        rows: List[List[str]] = []
        for row in result_set:
            values = result_set.scan_values(row)
            rows.append(self._stringify_row(values, options.null_display))
        return rows

    def _format_table(
        self, headers: List[str], rows: List[List[str]], border: bool
    ) -> List[str]:
        widths = self._compute_widths(headers, rows)
        lines: List[str] = []
        if border:
            lines.append(self._build_border(widths))
        lines.append(self._format_row(headers, widths, border))
        lines.append(self._build_border(widths))
        for row in rows:
            lines.extend(self._format_cells(row, widths, border))
        if border:
            lines.append(self._build_border(widths))
        return lines

    def _compute_widths(self, headers: List[str], rows: List[List[str]]) -> List[int]:
        widths = [len(header) for header in headers]
        for row in rows:
            for index, text in enumerate(row):
                if index >= len(widths):
                    widths.append(0)
                longest = max(len(line) for line in text.split("\n"))
                if longest > widths[index]:
                    widths[index] = longest
        return widths

    def _build_border(self, widths: List[int]) -> str:
        parts = ["+"]
        for width in widths:
            parts.append("-" * (width + 2))
            parts.append("+")
        return "".join(parts)

    def _format_row(self, values: List[str], widths: List[int], border: bool) -> str:
        cells = []
        for index, width in enumerate(widths):
            value = values[index] if index < len(values) else ""
            cells.append(f" {value.ljust(width)} ")
        if border:
            return "|" + "|".join(cells) + "|"
        return "|".join(cells).rstrip()

    def _format_cells(
        self, values: List[str], widths: List[int], border: bool
    ) -> List[str]:
        """Format one row, wrapping multi-line cells onto continuation lines."""
        cells = [value.split("\n") for value in values]
        height = max((len(lines) for lines in cells), default=1)
        lines = []
        for number in range(height):
            values_at = [c[number] if number < len(c) else "" for c in cells]
            lines.append(self._format_row(values_at, widths, border))
        return lines

    def _stringify_row(self, row: List[Any], null_display: str) -> List[str]:
        return [self._stringify_cell(value, null_display) for value in row]

    def _stringify_cell(self, value: Any, null_display: str) -> str:
        if value is None:
            return null_display
        if isinstance(value, float):
            return f"{value:g}"
        return str(value)

    def _center(self, line: str, headers: List[str], rows: List[List[str]]) -> str:
        width = len(self._build_border(self._compute_widths(headers, rows)))
        if len(line) >= width:
            return line
        return line.center(width).rstrip()

    def _footer(self, count: int) -> str:
        if count == 1:
            return "(1 row)"
        return f"({count} rows)"


def encode_all(
    emit: Emit,
    result_set: ResultSet,
    options: RenderOptions,
    summary: Optional[Summary] = None,
) -> None:
    """Render ``result_set`` through a fresh encoder."""
    TableEncoder(emit).encode(result_set, options, summary)

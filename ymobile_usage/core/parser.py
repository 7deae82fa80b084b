"""
Usage page parsing.

The portal exposes no structured API, so the only stable reference points
are the ordinal positions of the table blocks on the usage page and of one
row inside each. A PageParser implementation pins one such layout; when the
portal changes its markup a new implementation is registered in PARSERS.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from ..log import get_logger
from ..storage.models import RawUsageFields
from .errors import ParseError

MIN_TABLES = 4
EXCERPT_LENGTH = 300
# Upper bound for any single figure on the page, in GB.
MAX_GB = Decimal("1000000")

_TABLE_RE = re.compile(r'<table[^>]*>[\s\S]*?</table>', re.IGNORECASE)
_ROW_RE = re.compile(r'<tr[^>]*>[\s\S]*?</tr>', re.IGNORECASE)
_CELL_RE = re.compile(r'<td[^>]*>([\s\S]*?)</td>', re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]*>')
_SPACE_RE = re.compile(r'\s+')


def find_hidden_field(html: str, name: str) -> Optional[str]:
    """Return the value of ``<input name="..." value="...">`` or None.

    Accepts the attributes in either order.
    """
    escaped = re.escape(name)
    patterns = (
        rf'name="{escaped}"\s+value="([^"]*)"',
        rf'value="([^"]*)"\s+name="{escaped}"',
    )
    for pattern in patterns:
        match = re.search(pattern, html)
        if match and match.group(1):
            return match.group(1)
    return None


def cell_text(cell_html: str) -> str:
    """Strip tags, all whitespace and the GB unit suffix from a cell."""
    text = _TAG_RE.sub('', cell_html)
    text = _SPACE_RE.sub('', text)
    return text.replace('GB', '').strip()


@dataclass(frozen=True)
class FieldPosition:
    """Location of one figure: table index and row index, both 0-based."""
    table: int
    row: int


class PageParser(ABC):
    """Turns usage-page HTML into raw figures."""

    @abstractmethod
    def parse(self, html: str) -> RawUsageFields:
        """Extract the four raw figures.

        Raises:
            ParseError: Naming the field or structure that failed
        """


class TableLayoutParser(PageParser):
    """Parser for pages that carry each figure in the first cell of a fixed row."""

    def __init__(self, positions: Dict[str, FieldPosition], logger: Optional[logging.Logger] = None):
        """Initialize the parser.

        Args:
            positions: Mapping of RawUsageFields attribute names to positions
            logger: Optional logger; defaults to the module logger
        """
        missing = set(RawUsageFields.__dataclass_fields__) - set(positions)
        if missing:
            raise ValueError(f"Positions missing for fields: {sorted(missing)}")
        self.positions = dict(positions)
        self.logger = logger or get_logger(__name__)

    def parse(self, html: str) -> RawUsageFields:
        tables = _TABLE_RE.findall(html or '')
        if len(tables) < MIN_TABLES:
            self._log_failure("insufficient-tables", html or '')
            raise ParseError("insufficient-tables", len(tables))

        values = {
            name: self._extract(name, tables, position)
            for name, position in self.positions.items()
        }
        return RawUsageFields(**values)

    def _extract(self, name: str, tables: List[str], position: FieldPosition) -> float:
        if position.table >= len(tables):
            self._log_failure(name, '')
            raise ParseError(name, f"table {position.table} not found")
        table = tables[position.table]

        rows = _ROW_RE.findall(table)
        if position.row >= len(rows):
            self._log_failure(name, table)
            raise ParseError(name, f"row {position.row} not found")

        cells = _CELL_RE.findall(rows[position.row])
        if not cells:
            self._log_failure(name, rows[position.row])
            raise ParseError(name, "cell not found")

        text = cell_text(cells[0])
        try:
            value = Decimal(text)
        except InvalidOperation:
            self._log_failure(name, rows[position.row])
            raise ParseError(name, f"not a number: {text!r}")
        if not value.is_finite():
            self._log_failure(name, rows[position.row])
            raise ParseError(name, f"not a number: {text!r}")
        if abs(value) > MAX_GB:
            self._log_failure(name, rows[position.row])
            raise ParseError(name, f"out of range: {text!r}")
        return float(value)

    def _log_failure(self, name: str, markup: str) -> None:
        excerpt = _SPACE_RE.sub(' ', markup)[:EXCERPT_LENGTH]
        self.logger.warning(f"Usage page layout mismatch at '{name}': {excerpt!r}")


# Current portal layout: carryover, basic, paid, used.
V1_POSITIONS = {
    "carryover_gb": FieldPosition(table=0, row=0),
    "basic_gb": FieldPosition(table=1, row=1),
    "paid_gb": FieldPosition(table=2, row=0),
    "used_gb": FieldPosition(table=3, row=0),
}

PARSERS = {
    "v1": V1_POSITIONS,
}


def get_parser(layout: str = "v1", logger: Optional[logging.Logger] = None) -> PageParser:
    """Return the parser registered for a portal layout version.

    Raises:
        ValueError: If the layout is unknown
    """
    if layout not in PARSERS:
        raise ValueError(f"Unknown page layout: {layout}")
    return TableLayoutParser(PARSERS[layout], logger=logger)

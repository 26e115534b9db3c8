"""CSV codec for the semi-finished products ledger.

The ledger is append-only. Its header declares how many
(ingredient, ingredient lot) column pairs every row carries; that capacity is
fixed when the file is first written and read back from the header on every
later append.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from .errors import LedgerSchemaError
from .models import IngredientLot, ProductionRow

logger = logging.getLogger(__name__)

LEDGER_FILE_NAME = "Registro_Semilavorati.csv"
DEFAULT_SLOTS = 10
DELIMITER = ";"
LINE_END = "\r\n"
BASE_COLUMNS = ["Data Produzione", "Data Scadenza", "Prodotto", "Lotto Prodotto"]
_DATE_FORMAT = "%d/%m/%Y"


@dataclass
class Ledger:
    slots: int
    rows: list[ProductionRow] = field(default_factory=list)


def _write_line(values: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.writer(
        buf,
        delimiter=DELIMITER,
        lineterminator=LINE_END,
        quoting=csv.QUOTE_MINIMAL,
    )
    writer.writerow(values)
    return buf.getvalue()


def _read_lines(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=DELIMITER)
    return [row for row in reader if any(cell.strip() for cell in row)]


def format_date(value: date | None) -> str:
    return value.strftime(_DATE_FORMAT) if value else ""


def parse_date(value: str) -> date:
    value = value.strip()
    try:
        return datetime.strptime(value, _DATE_FORMAT).date()
    except ValueError:
        # Rows written by hand sometimes carry ISO dates
        return date.fromisoformat(value)


def _cell_date(value: str) -> date | None:
    try:
        return parse_date(value)
    except ValueError:
        if value.strip():
            logger.warning("Unreadable ledger date %r", value)
        return None


def build_header(slots: int) -> str:
    """Return the header line (with CRLF) for a ledger of ``slots`` pairs."""
    if slots < 0:
        raise ValueError(f"slots must be >= 0, got {slots}")
    columns = list(BASE_COLUMNS)
    for i in range(1, slots + 1):
        columns.append(f"Ingrediente {i}")
        columns.append(f"Lotto Ingrediente {i}")
    return _write_line(columns)


def read_capacity(header_line: str, strict: bool = False) -> int:
    """Derive the ingredient slot capacity from a header line.

    Raises:
        LedgerSchemaError: If the header has fewer than the four fixed
            columns, or (in strict mode) an unpaired trailing column.
    """
    rows = _read_lines(header_line)
    columns = rows[0] if rows else []
    if len(columns) < len(BASE_COLUMNS):
        raise LedgerSchemaError(
            f"Intestazione del registro non valida ({len(columns)} colonne): "
            f"{header_line.strip()!r}"
        )
    extra = len(columns) - len(BASE_COLUMNS)
    if extra % 2:
        if strict:
            raise LedgerSchemaError(
                f"Intestazione del registro con colonna ingrediente spaiata "
                f"({len(columns)} colonne)"
            )
        logger.warning(
            "Ledger header has %d columns; ignoring the unpaired last column",
            len(columns),
        )
    return extra // 2


def ledger_capacity(text: str, strict: bool = False) -> int:
    """Capacity declared by the first non-blank line of a ledger text."""
    lines = _read_lines(text)
    if not lines:
        return DEFAULT_SLOTS
    return read_capacity(_write_line(lines[0]), strict)


def build_row(row: ProductionRow, slots: int) -> str:
    """Serialize ``row`` padded to ``slots`` ingredient pairs."""
    if len(row.ingredients) > slots:
        raise LedgerSchemaError(
            f"Troppi ingredienti ({len(row.ingredients)}): "
            f"il registro ne supporta al massimo {slots}"
        )
    values = [
        format_date(row.production_date),
        format_date(row.expiry_date),
        row.product,
        row.lot_code,
    ]
    for i in range(slots):
        if i < len(row.ingredients):
            values.extend([row.ingredients[i].name, row.ingredients[i].lot_code])
        else:
            values.extend(["", ""])
    return _write_line(values)


def append_row(existing_text: str, row: ProductionRow, slots: int) -> str:
    """Return the ledger text with ``row`` appended.

    A missing header is written first. Existing rows are never touched,
    only the trailing line break is normalised.
    """
    text = existing_text.rstrip()
    if not text:
        text = build_header(slots)
    else:
        text += LINE_END
    return text + build_row(row, slots)


def parse_ledger(text: str) -> Ledger:
    """Parse a full ledger text into its capacity and rows."""
    lines = _read_lines(text)
    if not lines:
        return Ledger(slots=DEFAULT_SLOTS)
    slots = read_capacity(_write_line(lines[0]))
    rows: list[ProductionRow] = []
    for values in lines[1:]:
        values = values + [""] * (len(BASE_COLUMNS) + slots * 2 - len(values))
        prod, exp, product, lot_code, *rest = values
        ingredients = [
            IngredientLot(name=rest[i], lot_code=rest[i + 1])
            for i in range(0, slots * 2, 2)
            if rest[i].strip() or rest[i + 1].strip()
        ]
        rows.append(
            ProductionRow(
                production_date=_cell_date(prod),
                expiry_date=_cell_date(exp),
                product=product,
                lot_code=lot_code,
                ingredients=ingredients,
            )
        )
    return Ledger(slots=slots, rows=rows)


def raw_rows(text: str) -> list[list[str]]:
    """Return the data rows as raw field lists, header excluded."""
    return _read_lines(text)[1:]


def lot_codes(text: str) -> set[str]:
    """Return every product lot code present in the ledger."""
    return {
        values[3].strip() for values in raw_rows(text) if len(values) > 3
    }

"""PDF registers using ReportLab.

Two families of documents are produced:

* monthly calendar grids (temperatures, sanitation): one label column plus
  31 day columns whatever the month length, a signature row stamped with the
  operator's signature on every recorded day;
* the semi-finished products register, a listing of ledger rows and their
  ingredient lots that paginates as long as it needs to.

Layout is computed in millimetres with a top-left origin; ``PdfCanvas``
translates to ReportLab's bottom-left points.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import date

from PIL import Image
from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas as rl_canvas

from .errors import HaccpError, RenderError, ValidationError
from .ledger import format_date, parse_ledger
from .models import SANITATION_ITEMS, CompanyInfo, DailyRecord
from .signature import (
    Rect,
    SignatureOptions,
    composite_into,
    decode_data_url,
    prepare,
)

logger = logging.getLogger(__name__)

TEMPERATURE = "temperature"
SANITATION = "sanitation"
LEDGER = "ledger"

DOCUMENT_LABELS = {
    TEMPERATURE: "Temperature",
    SANITATION: "Sanificazione",
    LEDGER: "Semilavorati",
}

_TITLES = {
    TEMPERATURE: "REGISTRO DI CONTROLLO TEMPERATURE",
    SANITATION: "REGISTRO DI CONTROLLO SANIFICAZIONE",
}

MONTH_NAMES = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]

DAYS = 31
CHECK_MARK = "4"  # ✔ in ZapfDingbats

SignatureProvider = Callable[[], Awaitable[bytes | None]]


def month_label(year: int, month: int) -> str:
    """``ottobre 2025``, the name used for Drive month folders."""
    return f"{MONTH_NAMES[month - 1]} {year}"


def month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


@dataclass
class Document:
    kind: str
    year: int
    month: int
    content: bytes
    page_count: int = 1
    day: int | None = None

    @property
    def label(self) -> str:
        return DOCUMENT_LABELS[self.kind]

    @property
    def filename(self) -> str:
        """Drive file name, e.g. ``HACCP_Temperature_ottobre_2025.pdf``."""
        if self.kind == LEDGER:
            return "Registro_Semilavorati_aggiornato.pdf"
        if self.day is not None:
            return f"HACCP_{self.label}_{self.year}-{self.month:02d}-{self.day:02d}.pdf"
        safe = "_".join(month_label(self.year, self.month).split())
        return f"HACCP_{self.label}_{safe}.pdf"

    @property
    def archive_name(self) -> str:
        """Archive entry name, e.g. ``HACCP_Temperature_2025-10.pdf``."""
        key = month_key(self.year, self.month)
        if self.day is not None:
            key = f"{key}-{self.day:02d}"
        return f"HACCP_{self.label}_{key}.pdf"


# ── Grid layout model ────────────────────────────────────────


@dataclass
class GridRow:
    label: str
    cells: list[str] = field(default_factory=lambda: [""] * DAYS)


@dataclass
class Grid:
    kind: str
    year: int
    month: int
    rows: list[GridRow]
    signed_days: list[int]
    records: dict[int, DailyRecord]


def _format_temperature(value: float) -> str:
    return f"{value:g}°"


def _row_values(kind: str, record: DailyRecord) -> list[tuple[str, str]]:
    if kind == TEMPERATURE:
        t = record.temperatures
        return [
            ("C1", _format_temperature(t.freezer)),
            ("F1", _format_temperature(t.fridge1)),
            ("F2", _format_temperature(t.fridge2)),
        ]
    return [(label, "X" if done else "-") for label, done in record.sanitation.items()]


def _row_labels(kind: str) -> list[str]:
    if kind == TEMPERATURE:
        return ["C1", "F1", "F2"]
    if kind == SANITATION:
        return [label for _, label in SANITATION_ITEMS]
    raise ValueError(f"Tipo di registro sconosciuto: {kind!r}")


def build_grid(
    kind: str, records: Iterable[DailyRecord], year: int, month: int
) -> Grid:
    """Lay out the calendar grid for one month.

    A day column is filled only when a record exists for that exact date;
    records from other months are ignored.
    """
    rows = [GridRow(label=label) for label in _row_labels(kind)]
    by_day: dict[int, DailyRecord] = {}
    for record in sorted(records, key=lambda r: r.date):
        if record.date.year == year and record.date.month == month:
            by_day[record.date.day] = record

    for day, record in sorted(by_day.items()):
        for row, (_, value) in zip(rows, _row_values(kind, record)):
            row.cells[day - 1] = value

    return Grid(
        kind=kind,
        year=year,
        month=month,
        rows=rows,
        signed_days=sorted(by_day),
        records=by_day,
    )


# ── Drawing back-end ─────────────────────────────────────────


class PdfCanvas:
    """ReportLab canvas addressed in millimetres from the top-left corner."""

    def __init__(self, pagesize=landscape(A4)) -> None:
        self._buf = io.BytesIO()
        self._c = rl_canvas.Canvas(self._buf, pagesize=pagesize)
        self.width = pagesize[0] / mm
        self.height = pagesize[1] / mm
        self.page_count = 1
        self._font = ("Helvetica", 10.0)
        self._line_width = 0.2

    def _y(self, y: float) -> float:
        return (self.height - y) * mm

    def set_font(self, name: str, size: float) -> None:
        self._font = (name, size)
        self._c.setFont(name, size)

    def set_line_width(self, width: float) -> None:
        self._line_width = width
        self._c.setLineWidth(width)

    def text_width(self, text: str) -> float:
        name, size = self._font
        return stringWidth(text, name, size) / mm

    def text(self, x: float, y: float, text: str) -> None:
        self._c.drawString(x * mm, self._y(y), text)

    def centered_text(self, x: float, width: float, y: float, text: str) -> None:
        self.text(x + (width - self.text_width(text)) / 2, y, text)

    def rect(self, r: Rect, fill: tuple[float, float, float] | None = None) -> None:
        if fill is None:
            self._c.rect(r.x * mm, self._y(r.bottom), r.width * mm, r.height * mm)
            return
        self._c.saveState()
        self._c.setFillColorRGB(*fill)
        self._c.rect(
            r.x * mm, self._y(r.bottom), r.width * mm, r.height * mm,
            stroke=1, fill=1,
        )
        self._c.restoreState()

    def line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self._c.line(x1 * mm, self._y(y1), x2 * mm, self._y(y2))

    def save_state(self) -> None:
        self._c.saveState()

    def restore_state(self) -> None:
        self._c.restoreState()

    def clip_rect(self, rect: Rect) -> None:
        path = self._c.beginPath()
        path.rect(rect.x * mm, self._y(rect.bottom), rect.width * mm, rect.height * mm)
        self._c.clipPath(path, stroke=0, fill=0)

    def draw_image(self, image: Image.Image, rect: Rect) -> None:
        self._c.drawImage(
            ImageReader(image),
            rect.x * mm,
            self._y(rect.bottom),
            width=rect.width * mm,
            height=rect.height * mm,
            mask="auto",
        )

    def new_page(self) -> None:
        self._c.showPage()
        self.page_count += 1
        # ReportLab resets graphics state on every page
        self.set_font(*self._font)
        self.set_line_width(self._line_width)

    def finish(self) -> bytes:
        self._c.save()
        return self._buf.getvalue()


# ── Calendar registers ───────────────────────────────────────


@dataclass(frozen=True)
class GridGeometry:
    start_x: float = 10.0
    start_y: float = 60.0
    label_width: float = 22.0
    day_width: float = 8.2
    cell_height: float = 6.0
    signature_extra: float = 0.4
    bottom_margin: float = 15.0

    def day_x(self, day: int) -> float:
        return self.start_x + self.label_width + (day - 1) * self.day_width

    @property
    def right(self) -> float:
        return self.start_x + self.label_width + DAYS * self.day_width


_GEOMETRY = {
    TEMPERATURE: GridGeometry(cell_height=6.0),
    SANITATION: GridGeometry(cell_height=5.5),
}


def _draw_header(pdf: PdfCanvas, kind: str, company: CompanyInfo, year: int, month: int) -> None:
    pdf.set_font("Helvetica-Bold", 11)
    pdf.text(15, 15, "MANUALE DI CONTROLLO IGIENICO SANITARIO")
    pdf.text(15, 22, _TITLES[kind])
    pdf.set_font("Helvetica", 9)
    pdf.text(15, 35, f"MESE: {MONTH_NAMES[month - 1].capitalize()}")
    pdf.text(70, 35, f"ANNO {year}")
    pdf.text(15, 42, f"AZIENDA: {company.name}")
    pdf.text(15, 49, f"P.IVA: {company.piva}")
    if company.address:
        pdf.text(70, 49, f"SEDE: {company.address}")


def _draw_check_mark(pdf: PdfCanvas, cell: Rect) -> None:
    pdf.set_font("ZapfDingbats", 7)
    pdf.centered_text(cell.x, cell.width, cell.y + cell.height / 2 + 1, CHECK_MARK)


def _sign_cell(
    pdf: PdfCanvas,
    cell: Rect,
    record: DailyRecord,
    site_signature: Image.Image | None,
    options: SignatureOptions,
) -> str:
    """Stamp one signature cell, trying each source in turn.

    Returns the name of the tier that was used.
    """
    tiers: list[tuple[str, Image.Image | bytes | None]] = [
        ("osa", site_signature),
        ("record", decode_data_url(record.signature)),
    ]
    for name, source in tiers:
        if source is not None and composite_into(source, cell, pdf, options):
            return name
    _draw_check_mark(pdf, cell)
    return "check"


def _draw_grid(
    pdf: PdfCanvas,
    grid: Grid,
    site_signature: Image.Image | None,
    options: SignatureOptions,
) -> None:
    geo = _GEOMETRY[grid.kind]
    h = geo.cell_height
    pdf.set_line_width(0.5)

    # Day header row
    pdf.set_font("Helvetica-Bold", 7)
    pdf.rect(Rect(geo.start_x, geo.start_y - h, geo.label_width, h))
    pdf.text(geo.start_x + 2, geo.start_y - 2, "GIORNO")
    for day in range(1, DAYS + 1):
        cell = Rect(geo.day_x(day), geo.start_y - h, geo.day_width, h)
        pdf.rect(cell)
        pdf.centered_text(cell.x, cell.width, geo.start_y - 2, str(day))

    label_size = 7 if grid.kind == TEMPERATURE else 6
    value_size = 6 if grid.kind == TEMPERATURE else 8
    for index, row in enumerate(grid.rows):
        y = geo.start_y + index * h
        pdf.rect(Rect(geo.start_x, y, geo.label_width, h))
        pdf.set_font("Helvetica-Bold", label_size)
        pdf.text(geo.start_x + 1.5, y + h / 2 + 1, row.label)
        pdf.set_font("Helvetica", value_size)
        for day in range(1, DAYS + 1):
            cell = Rect(geo.day_x(day), y, geo.day_width, h)
            pdf.rect(cell)
            value = row.cells[day - 1]
            if value:
                pdf.centered_text(cell.x, cell.width, y + h / 2 + 1, value)

    sig_y = geo.start_y + len(grid.rows) * h
    sig_h = h + geo.signature_extra
    pdf.rect(Rect(geo.start_x, sig_y, geo.label_width, sig_h))
    pdf.set_font("Helvetica-Bold", 7)
    pdf.text(geo.start_x + 1.5, sig_y + sig_h / 2 + 1, "FIRMA OSA")
    for day in range(1, DAYS + 1):
        pdf.rect(Rect(geo.day_x(day), sig_y, geo.day_width, sig_h))
    pdf.line(geo.start_x, sig_y + sig_h, geo.right, sig_y + sig_h)

    for day in grid.signed_days:
        cell = Rect(geo.day_x(day), sig_y, geo.day_width, sig_h)
        tier = _sign_cell(pdf, cell, grid.records[day], site_signature, options)
        logger.debug("Day %d signed with %s signature", day, tier)
        # Gridline back on top of the image
        pdf.rect(cell)


def _draw_notes(pdf: PdfCanvas, kind: str, notes: str) -> None:
    geo = _GEOMETRY[kind]
    rows = len(_row_labels(kind))
    y = geo.start_y + rows * geo.cell_height + geo.cell_height + 12
    width = pdf.width - 2 * geo.start_x
    pdf.set_font("Helvetica-Bold", 8)
    pdf.text(geo.start_x, y, "Note:")
    pdf.set_font("Helvetica", 8)
    for line in simpleSplit(notes, "Helvetica", 8, width * mm):
        y += 4
        if y > pdf.height - geo.bottom_margin:
            pdf.new_page()
            y = 20.0
        pdf.text(geo.start_x, y, line)


async def _load_site_signature(
    provider: SignatureProvider | None, options: SignatureOptions
) -> Image.Image | None:
    if provider is None:
        return None
    try:
        data = await provider()
    except (HaccpError, OSError) as e:
        logger.warning("Site signature unavailable: %s", e)
        return None
    if not data:
        return None
    try:
        return prepare(data, options)
    except RenderError as e:
        logger.warning("Site signature unusable: %s", e)
        return None


async def render_month(
    kind: str,
    records: Iterable[DailyRecord],
    company: CompanyInfo,
    year: int,
    month: int,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> Document:
    """Render the monthly temperature or sanitation register.

    Args:
        kind: ``TEMPERATURE`` or ``SANITATION``.
        records: Daily records; only those dated in ``year``/``month`` are used.
        company: Printed in the document header.
        signature: Awaitable provider of the site (OSA) signature image,
            awaited once and only if at least one day is recorded.
        options: Signature compositing options.
    """
    grid = build_grid(kind, records, year, month)
    options = options or SignatureOptions(scale=0.9)
    site = await _load_site_signature(signature, options) if grid.signed_days else None

    pdf = PdfCanvas(landscape(A4))
    _draw_header(pdf, kind, company, year, month)
    _draw_grid(pdf, grid, site, options)
    content = pdf.finish()
    logger.info(
        "Rendered %s register %s (%d recorded days)",
        kind, month_key(year, month), len(grid.signed_days),
    )
    return Document(
        kind=kind, year=year, month=month, content=content,
        page_count=pdf.page_count,
    )


async def render_day(
    kind: str,
    record: DailyRecord,
    company: CompanyInfo,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> Document:
    """Render a single day: the month grid with only that day filled in."""
    day = record.date
    grid = build_grid(kind, [record], day.year, day.month)
    options = options or SignatureOptions(scale=0.9)
    site = await _load_site_signature(signature, options)

    pdf = PdfCanvas(landscape(A4))
    _draw_header(pdf, kind, company, day.year, day.month)
    _draw_grid(pdf, grid, site, options)
    if record.notes:
        _draw_notes(pdf, kind, record.notes)
    content = pdf.finish()
    return Document(
        kind=kind, year=day.year, month=day.month, day=day.day,
        content=content, page_count=pdf.page_count,
    )


async def render_temperature_month(
    records: Iterable[DailyRecord],
    company: CompanyInfo,
    year: int,
    month: int,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> Document:
    return await render_month(
        TEMPERATURE, records, company, year, month, signature, options
    )


async def render_sanitation_month(
    records: Iterable[DailyRecord],
    company: CompanyInfo,
    year: int,
    month: int,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> Document:
    return await render_month(
        SANITATION, records, company, year, month, signature, options
    )


async def render_temperature_day(
    record: DailyRecord,
    company: CompanyInfo,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> Document:
    return await render_day(TEMPERATURE, record, company, signature, options)


async def render_sanitation_day(
    record: DailyRecord,
    company: CompanyInfo,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> Document:
    return await render_day(SANITATION, record, company, signature, options)


# ── Semi-finished products register ──────────────────────────

_LEDGER_MARGIN = 15.0
_PRODUCT_LABELS = [
    "Data di preparazione",
    "Data di scadenza",
    "Nome del prodotto",
    "Lotto del prodotto",
]
_INGREDIENT_HEADERS = ["Nome dell’ingrediente", "Lotto dell’ingrediente"]


def render_ledger(ledger_text: str, today: date | None = None) -> Document:
    """Render the semi-finished products register from the ledger CSV.

    Raises:
        ValidationError: If the ledger has no production rows.
    """
    ledger = parse_ledger(ledger_text)
    if not ledger.rows:
        raise ValidationError("Registro vuoto o incompleto")
    today = today or date.today()

    pdf = PdfCanvas(portrait(A4))
    margin = _LEDGER_MARGIN
    limit = pdf.height - margin - 20
    available = pdf.width - margin * 2

    pdf.set_line_width(0.2)
    pdf.set_font("Helvetica-Bold", 14)
    pdf.centered_text(0, pdf.width, margin, "REGISTRO SEMILAVORATI")
    y = margin + 10

    for row in ledger.rows:
        if y + 16 > limit:
            pdf.new_page()
            y = margin + 10

        values = [
            format_date(row.production_date) or "-",
            format_date(row.expiry_date) or "-",
            row.product or "-",
            row.lot_code or "-",
        ]
        cell_w = available / len(_PRODUCT_LABELS)
        x = margin
        for label, value in zip(_PRODUCT_LABELS, values):
            pdf.rect(Rect(x, y, cell_w, 16), fill=(1, 1, 1))
            pdf.set_font("Helvetica-Bold", 10)
            pdf.centered_text(x, cell_w, y + 6, label)
            pdf.set_font("Helvetica", 9)
            pdf.centered_text(x, cell_w, y + 13, value)
            x += cell_w
        y += 16 + 6

        if row.ingredients:
            if y + 12 > limit:
                pdf.new_page()
                y = margin + 10
            pdf.set_font("Helvetica-Bold", 11)
            pdf.text(margin, y, "Ingredienti utilizzati")
            y += 5

            ing_w = available / 2
            pdf.set_font("Helvetica-Bold", 9.5)
            for i, header in enumerate(_INGREDIENT_HEADERS):
                cell = Rect(margin + i * ing_w, y, ing_w, 7)
                pdf.rect(cell, fill=(0.94, 0.94, 0.94))
                pdf.centered_text(cell.x, cell.width, y + 5, header)
            y += 7

            pdf.set_font("Helvetica", 9)
            for ing in row.ingredients:
                for i, value in enumerate((ing.name or "-", ing.lot_code or "-")):
                    cell = Rect(margin + i * ing_w, y, ing_w, 10)
                    pdf.rect(cell, fill=(1, 1, 1))
                    pdf.centered_text(cell.x, cell.width, y + 6, value)
                y += 10
                if y > limit:
                    pdf.new_page()
                    y = margin + 10

        y += 12
        if y > limit:
            pdf.new_page()
            y = margin + 10

    content = pdf.finish()
    logger.info(
        "Rendered ledger register: %d rows on %d pages",
        len(ledger.rows), pdf.page_count,
    )
    return Document(
        kind=LEDGER, year=today.year, month=today.month,
        content=content, page_count=pdf.page_count,
    )

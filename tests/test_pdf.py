"""Tests for the calendar and ledger PDF registers."""

import base64
from datetime import date
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from haccp.registers import pdf
from haccp.registers.errors import RemoteIOError, ValidationError
from haccp.registers.ledger import append_row, build_header
from haccp.registers.models import IngredientLot, ProductionRow, SANITATION_ITEMS
from haccp.registers.pdf import (
    LEDGER,
    SANITATION,
    TEMPERATURE,
    Document,
    build_grid,
    month_label,
    render_day,
    render_ledger,
    render_month,
    render_sanitation_month,
    render_temperature_day,
    render_temperature_month,
)
from haccp.registers.signature import Rect, SignatureOptions

from fakes import make_record, signature_png


def _data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode()


class TestBuildGrid:
    def test_only_recorded_days_are_filled(self):
        records = [make_record(date(2025, 10, 5)), make_record(date(2025, 10, 18))]
        grid = build_grid(TEMPERATURE, records, 2025, 10)
        assert [r.label for r in grid.rows] == ["C1", "F1", "F2"]
        for row in grid.rows:
            filled = [i for i, cell in enumerate(row.cells) if cell]
            assert filled == [4, 17]
            assert len(row.cells) == 31
        assert grid.signed_days == [5, 18]

    def test_temperature_values(self):
        grid = build_grid(TEMPERATURE, [make_record(date(2025, 10, 5))], 2025, 10)
        assert [r.cells[4] for r in grid.rows] == ["-19.5°", "2°", "3.4°"]

    def test_other_months_are_ignored(self):
        records = [make_record(date(2025, 9, 30)), make_record(date(2025, 11, 1))]
        grid = build_grid(TEMPERATURE, records, 2025, 10)
        assert grid.signed_days == []
        assert all(not cell for row in grid.rows for cell in row.cells)

    def test_sanitation_markers(self):
        record = make_record(date(2025, 10, 3), floors=False, ovens=False)
        grid = build_grid(SANITATION, [record], 2025, 10)
        assert [r.label for r in grid.rows] == [label for _, label in SANITATION_ITEMS]
        values = {r.label: r.cells[2] for r in grid.rows}
        assert values["PAVIMENTI"] == "-"
        assert values["FORNI"] == "-"
        assert values["ATTREZZATURE"] == "X"

    def test_short_month_keeps_31_columns(self):
        grid = build_grid(TEMPERATURE, [make_record(date(2025, 2, 28))], 2025, 2)
        assert all(len(r.cells) == 31 for r in grid.rows)
        assert grid.rows[0].cells[27] and not grid.rows[0].cells[28]

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_grid("humidity", [], 2025, 10)


def test_month_label():
    assert month_label(2025, 10) == "ottobre 2025"
    assert month_label(2026, 1) == "gennaio 2026"


def test_document_names():
    doc = Document(kind=TEMPERATURE, year=2025, month=10, content=b"")
    assert doc.filename == "HACCP_Temperature_ottobre_2025.pdf"
    assert doc.archive_name == "HACCP_Temperature_2025-10.pdf"
    doc = Document(kind=SANITATION, year=2025, month=3, content=b"", day=7)
    assert doc.archive_name == "HACCP_Sanificazione_2025-03-07.pdf"


class FakePdf:
    """Just enough of PdfCanvas for stamping one signature cell."""

    def __init__(self, fail_draw: bool = False) -> None:
        self.images = []
        self.texts = []
        self.fail_draw = fail_draw

    def set_font(self, name, size):
        self.font = name

    def centered_text(self, x, width, y, text):
        self.texts.append((self.font, text))

    def save_state(self):
        pass

    def clip_rect(self, rect):
        pass

    def draw_image(self, image, rect):
        if self.fail_draw:
            raise RuntimeError("draw failed")
        self.images.append((image.size, rect))

    def restore_state(self):
        pass


class TestSignatureTiers:
    CELL = Rect(32.0, 84.0, 8.2, 6.4)

    def test_site_signature_first(self):
        site = Image.new("RGBA", (30, 10), (0, 0, 0, 255))
        record = make_record(date(2025, 10, 5), signature=_data_url(signature_png()))
        canvas = FakePdf()
        tier = pdf._sign_cell(canvas, self.CELL, record, site, SignatureOptions())
        assert tier == "osa"
        assert canvas.images[0][0] == (30, 10)

    def test_record_signature_when_no_site_signature(self):
        record = make_record(date(2025, 10, 5), signature=_data_url(signature_png()))
        canvas = FakePdf()
        assert pdf._sign_cell(canvas, self.CELL, record, None, SignatureOptions()) == "record"
        assert len(canvas.images) == 1

    def test_check_mark_fallback(self):
        canvas = FakePdf()
        record = make_record(date(2025, 10, 5))
        assert pdf._sign_cell(canvas, self.CELL, record, None, SignatureOptions()) == "check"
        assert canvas.texts == [("ZapfDingbats", pdf.CHECK_MARK)]

    def test_unreadable_record_signature_falls_back(self):
        canvas = FakePdf()
        record = make_record(date(2025, 10, 5), signature="data:image/png;base64,AAAA")
        assert pdf._sign_cell(canvas, self.CELL, record, None, SignatureOptions()) == "check"

    def test_draw_failure_falls_back_to_check(self):
        site = Image.new("RGBA", (30, 10), (0, 0, 0, 255))
        record = make_record(date(2025, 10, 5), signature=_data_url(signature_png()))
        canvas = FakePdf(fail_draw=True)
        assert pdf._sign_cell(canvas, self.CELL, record, site, SignatureOptions()) == "check"


class TestRenderMonth:
    @pytest.mark.asyncio
    async def test_renders_pdf(self, company):
        records = [make_record(date(2025, 10, d)) for d in (1, 2, 31)]
        doc = await render_month(TEMPERATURE, records, company, 2025, 10)
        assert doc.content.startswith(b"%PDF")
        assert doc.page_count == 1
        assert (doc.kind, doc.year, doc.month, doc.day) == (TEMPERATURE, 2025, 10, None)

    @pytest.mark.asyncio
    async def test_site_signature_is_embedded(self, company, osa_png):
        provider = AsyncMock(return_value=osa_png)
        doc = await render_month(
            SANITATION, [make_record(date(2025, 10, 5))], company, 2025, 10, provider
        )
        provider.assert_awaited_once()
        assert b"/Subtype /Image" in doc.content

    @pytest.mark.asyncio
    async def test_no_image_without_signatures(self, company):
        doc = await render_month(
            TEMPERATURE, [make_record(date(2025, 10, 5))], company, 2025, 10
        )
        assert b"/Subtype /Image" not in doc.content

    @pytest.mark.asyncio
    async def test_provider_not_called_for_empty_month(self, company):
        provider = AsyncMock(return_value=b"")
        doc = await render_month(TEMPERATURE, [], company, 2025, 10, provider)
        provider.assert_not_awaited()
        assert doc.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_provider_failure_still_renders(self, company):
        provider = AsyncMock(side_effect=RemoteIOError("offline"))
        doc = await render_month(
            TEMPERATURE, [make_record(date(2025, 10, 5))], company, 2025, 10, provider
        )
        assert doc.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_typed_wrappers(self, company):
        records = [make_record(date(2025, 10, 5))]
        temp = await render_temperature_month(records, company, 2025, 10)
        sani = await render_sanitation_month(records, company, 2025, 10)
        assert temp.kind == TEMPERATURE
        assert sani.kind == SANITATION


class TestRenderDay:
    @pytest.mark.asyncio
    async def test_day_document(self, company):
        record = make_record(date(2025, 10, 21))
        doc = await render_temperature_day(record, company)
        assert doc.day == 21
        assert doc.archive_name == "HACCP_Temperature_2025-10-21.pdf"

    @pytest.mark.asyncio
    async def test_long_notes_paginate(self, company):
        record = make_record(date(2025, 10, 21))
        record.notes = "parola " * 3000
        doc = await render_day(SANITATION, record, company)
        assert doc.page_count >= 2


def _ledger_text(rows: int, ingredients: int = 3) -> str:
    text = build_header(10)
    for i in range(rows):
        row = ProductionRow(
            production_date=date(2025, 10, 21),
            expiry_date=date(2025, 10, 24),
            product="Salsa piccante",
            lot_code=f"SAPI211025{i or ''}",
            ingredients=[IngredientLot(f"Ing {j}", f"L{j}") for j in range(ingredients)],
        )
        text = append_row(text, row, 10)
    return text


class TestRenderLedger:
    def test_single_row(self):
        doc = render_ledger(_ledger_text(1), today=date(2025, 10, 22))
        assert doc.kind == LEDGER
        assert doc.page_count == 1
        assert doc.filename == "Registro_Semilavorati_aggiornato.pdf"
        assert doc.content.startswith(b"%PDF")

    def test_paginates(self):
        doc = render_ledger(_ledger_text(12, ingredients=5))
        assert doc.page_count > 1

    def test_many_ingredients_in_one_row_paginate(self):
        doc = render_ledger(_ledger_text(3, ingredients=10))
        assert doc.page_count > 1

    def test_empty_ledger(self):
        with pytest.raises(ValidationError):
            render_ledger("")

    def test_header_only(self):
        with pytest.raises(ValidationError):
            render_ledger(build_header(10))

    def test_blank_expiry_date_is_rendered(self):
        text = build_header(2) + "21/10/2025;;Salsa base;SABA211025;Pomodoro;L1;;\r\n"
        doc = render_ledger(text, today=date(2025, 10, 22))
        assert doc.page_count == 1
        assert doc.content.startswith(b"%PDF")

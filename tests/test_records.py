"""Tests for the record book and the record generator."""

import random
from datetime import date

import pytest

from haccp.registers.errors import ValidationError
from haccp.registers.models import Temperatures
from haccp.registers.records import (
    MAX_GENERATED_DAYS,
    RecordBook,
    create_record,
    date_range,
    default_sanitation,
    generate_records,
    random_temperature,
)

from fakes import make_record


class TestRecordBook:
    def test_save_and_get(self):
        book = RecordBook()
        record = make_record(date(2025, 10, 5))
        book.save(record)
        assert book.get(date(2025, 10, 5)) is record
        assert len(book) == 1

    def test_save_replaces_same_date(self):
        book = RecordBook()
        first = book.save(make_record(date(2025, 10, 5)))
        replacement = make_record(date(2025, 10, 5))
        replacement.temperatures = Temperatures(-20.0, 1.0, 1.0)
        saved = book.save(replacement)
        assert len(book) == 1
        assert book.get(date(2025, 10, 5)).temperatures.freezer == -20.0
        assert saved.created_at == first.created_at
        assert saved.updated_at >= first.updated_at

    def test_all_sorted_by_date(self):
        book = RecordBook([
            make_record(date(2025, 10, 9)),
            make_record(date(2025, 9, 1)),
            make_record(date(2025, 10, 2)),
        ])
        assert [r.date.day for r in book.all()] == [1, 2, 9]

    def test_by_month_and_months(self):
        book = RecordBook([
            make_record(date(2025, 9, 30)),
            make_record(date(2025, 10, 1)),
            make_record(date(2024, 10, 1)),
        ])
        assert [r.date for r in book.by_month(2025, 10)] == [date(2025, 10, 1)]
        assert book.months() == [(2024, 10), (2025, 9), (2025, 10)]

    def test_delete(self):
        book = RecordBook([make_record(date(2025, 10, 1))])
        assert book.delete(date(2025, 10, 1)) is True
        assert book.delete(date(2025, 10, 1)) is False

    def test_delete_month(self):
        book = RecordBook([
            make_record(date(2025, 10, 1)),
            make_record(date(2025, 10, 2)),
            make_record(date(2025, 11, 1)),
        ])
        assert book.delete_month(2025, 10) == 2
        assert book.months() == [(2025, 11)]

    def test_clear(self):
        book = RecordBook([make_record(date(2025, 10, 1))])
        book.clear()
        assert len(book) == 0

    def test_dump_and_load(self, tmp_path):
        path = tmp_path / "records.json"
        record = make_record(date(2025, 10, 1), signature="data:image/png;base64,AAAA", floors=False)
        record.notes = "Frigo 2 sbrinato"
        RecordBook([record]).dump(path)

        loaded = RecordBook.load(path).get(date(2025, 10, 1))
        assert loaded.temperatures == record.temperatures
        assert loaded.sanitation.floors is False
        assert loaded.sanitation.ovens is True
        assert loaded.notes == "Frigo 2 sbrinato"
        assert loaded.signature == record.signature
        assert loaded.created_at == record.created_at

    def test_load_missing_file(self, tmp_path):
        assert len(RecordBook.load(tmp_path / "missing.json")) == 0


class TestGeneration:
    def test_temperature_ranges(self):
        rng = random.Random(1)
        for _ in range(200):
            assert -22.0 <= random_temperature("freezer", rng) <= -18.0
            assert 0.0 <= random_temperature("fridge", rng) <= 4.0

    def test_temperature_one_decimal(self):
        value = random_temperature("fridge", random.Random(3))
        assert value == round(value, 1)

    def test_unknown_appliance(self):
        with pytest.raises(ValueError):
            random_temperature("oven")

    def test_sanitation_mostly_done(self):
        rng = random.Random(7)
        flags = [done for _ in range(100) for _, done in default_sanitation(rng).items()]
        ratio = sum(flags) / len(flags)
        assert 0.8 < ratio < 0.97

    def test_date_range_inclusive(self):
        days = date_range(date(2025, 2, 27), date(2025, 3, 1))
        assert days == [date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1)]

    def test_create_record_uses_given_values(self):
        temps = Temperatures(-19.0, 1.0, 2.0)
        record = create_record(date(2025, 10, 1), "sig", temperatures=temps, notes="ok")
        assert record.temperatures is temps
        assert record.signature == "sig"
        assert record.notes == "ok"

    @pytest.mark.asyncio
    async def test_generate_fills_range(self):
        book = RecordBook()
        count = await generate_records(
            book, date(2025, 10, 1), date(2025, 10, 31), "data:sig", random.Random(0)
        )
        assert count == 31
        assert len(book.by_month(2025, 10)) == 31
        assert all(r.signature == "data:sig" for r in book.all())

    @pytest.mark.asyncio
    async def test_generate_overwrites_existing_days(self):
        book = RecordBook([make_record(date(2025, 10, 1))])
        await generate_records(book, date(2025, 10, 1), date(2025, 10, 2), "sig")
        assert len(book) == 2
        assert book.get(date(2025, 10, 1)).signature == "sig"

    @pytest.mark.asyncio
    async def test_generate_requires_signature(self):
        with pytest.raises(ValidationError):
            await generate_records(RecordBook(), date(2025, 10, 1), date(2025, 10, 2), "")

    @pytest.mark.asyncio
    async def test_generate_rejects_inverted_range(self):
        with pytest.raises(ValidationError):
            await generate_records(RecordBook(), date(2025, 10, 2), date(2025, 10, 1), "sig")

    @pytest.mark.asyncio
    async def test_generate_rejects_more_than_a_year(self):
        book = RecordBook()
        with pytest.raises(ValidationError):
            await generate_records(book, date(2024, 1, 1), date(2025, 1, 1), "sig")
        assert len(book) == 0

    @pytest.mark.asyncio
    async def test_generate_accepts_a_full_year(self):
        book = RecordBook()
        count = await generate_records(book, date(2025, 1, 1), date(2025, 12, 31), "sig")
        assert count == MAX_GENERATED_DAYS

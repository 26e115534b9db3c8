"""Daily temperature/sanitation records and their local JSON cache."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

from .errors import ValidationError
from .models import DailyRecord, Sanitation, Temperatures, now_iso

logger = logging.getLogger(__name__)

MAX_GENERATED_DAYS = 365
_YIELD_EVERY = 10


class RecordBook:
    """All daily records of the site, at most one per date."""

    def __init__(self, records: list[DailyRecord] | None = None) -> None:
        self._records: dict[date, DailyRecord] = {}
        for record in records or []:
            self._records[record.date] = record

    def __len__(self) -> int:
        return len(self._records)

    def save(self, record: DailyRecord) -> DailyRecord:
        """Insert ``record``, or replace the one for the same date.

        Replacing bumps ``updated_at``; the original ``created_at`` is kept.
        """
        existing = self._records.get(record.date)
        if existing is not None:
            record = replace(
                record, created_at=existing.created_at, updated_at=now_iso()
            )
        self._records[record.date] = record
        return record

    def get(self, day: date) -> DailyRecord | None:
        return self._records.get(day)

    def all(self) -> list[DailyRecord]:
        return [self._records[d] for d in sorted(self._records)]

    def by_month(self, year: int, month: int) -> list[DailyRecord]:
        return [
            r for r in self.all() if r.date.year == year and r.date.month == month
        ]

    def months(self) -> list[tuple[int, int]]:
        """``(year, month)`` pairs that have at least one record, ascending."""
        return sorted({(d.year, d.month) for d in self._records})

    def delete(self, day: date) -> bool:
        return self._records.pop(day, None) is not None

    def delete_month(self, year: int, month: int) -> int:
        doomed = [d for d in self._records if d.year == year and d.month == month]
        for d in doomed:
            del self._records[d]
        return len(doomed)

    def clear(self) -> None:
        self._records.clear()

    @classmethod
    def load(cls, path: str | Path) -> RecordBook:
        """Load records from a JSON file; a missing file gives an empty book."""
        path = Path(path).expanduser()
        if not path.exists():
            return cls()
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls([DailyRecord.from_dict(item) for item in data])

    def dump(self, path: str | Path) -> None:
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        data = [r.to_dict() for r in self.all()]
        path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )


def random_temperature(kind: str, rng: random.Random | None = None) -> float:
    """A plausible reading: freezer -18 to -22 °C, fridge 0 to 4 °C."""
    rng = rng or random
    if kind == "freezer":
        return round(-(rng.random() * 4 + 18), 1)
    if kind == "fridge":
        return round(rng.random() * 4, 1)
    raise ValueError(f"Tipo di apparecchio sconosciuto: {kind!r}")


def default_sanitation(rng: random.Random | None = None) -> Sanitation:
    """Each item done nine times out of ten."""
    rng = rng or random
    return Sanitation(
        **{name: rng.random() > 0.1 for name in Sanitation.__dataclass_fields__}
    )


def date_range(start: date, end: date) -> list[date]:
    days = (end - start).days
    return [start + timedelta(days=i) for i in range(days + 1)]


def create_record(
    day: date,
    signature: str | None,
    rng: random.Random | None = None,
    temperatures: Temperatures | None = None,
    sanitation: Sanitation | None = None,
    notes: str = "",
) -> DailyRecord:
    return DailyRecord(
        date=day,
        temperatures=temperatures
        or Temperatures(
            freezer=random_temperature("freezer", rng),
            fridge1=random_temperature("fridge", rng),
            fridge2=random_temperature("fridge", rng),
        ),
        sanitation=sanitation or default_sanitation(rng),
        notes=notes,
        signature=signature,
    )


async def generate_records(
    book: RecordBook,
    start: date,
    end: date,
    signature: str,
    rng: random.Random | None = None,
) -> int:
    """Fill ``book`` with one generated record per day from start to end.

    Records already written stay written if this fails partway.

    Returns:
        Number of records written.

    Raises:
        ValidationError: Missing signature, inverted range or a range longer
            than a year.
    """
    if not signature:
        raise ValidationError("La firma OSA è obbligatoria")
    if start > end:
        raise ValidationError(
            "La data di inizio deve essere precedente alla data di fine"
        )
    days = date_range(start, end)
    if len(days) > MAX_GENERATED_DAYS:
        raise ValidationError(
            "Il periodo selezionato è troppo lungo (massimo 1 anno)"
        )

    logger.info("Generating %d records from %s to %s", len(days), start, end)
    for i, day in enumerate(days):
        book.save(create_record(day, signature, rng))
        if i % _YIELD_EVERY == 0:
            await asyncio.sleep(0)
    return len(days)

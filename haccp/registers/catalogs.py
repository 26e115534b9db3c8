"""Incoming goods registry and semi-finished product templates.

Both are plain state holders: the caller loads them from, and dumps them to,
a JSON file of its choosing.
"""

from __future__ import annotations

import csv
import io
import json
import time
import unicodedata
import uuid
from collections import defaultdict
from dataclasses import replace
from datetime import date
from pathlib import Path

from .errors import ValidationError
from .models import IncomingLot, SemiProductTemplate

UNASSIGNED = "Non assegnato"

DEFAULT_TEMPLATES = [
    SemiProductTemplate(name="Salsa base", ingredients=["Pomodoro", "Sale", "Olio"]),
    SemiProductTemplate(name="Crema al latte", ingredients=["Latte", "Zucchero"]),
    SemiProductTemplate(
        name="Impasto pizza",
        ingredients=["Farina", "Acqua", "Lievito", "Sale", "Olio"],
    ),
]

DEFAULT_CATEGORIES = [UNASSIGNED, "Antipasti", "Salse", "Impasti", "Curry", "Dolci"]

INCOMING_CSV_HEADER = ["Nome alimento", "Lotto", "Data di acquisto", "Fornitore"]


def _read_json(path: str | Path):
    path = Path(path).expanduser()
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json(path: str | Path, data) -> None:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def normalize_name(name: str) -> str:
    """Case, accent and whitespace insensitive key for ingredient names."""
    decomposed = unicodedata.normalize("NFD", name.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split())


class IncomingRegistry:
    """Receipt events for raw goods, kept sorted by purchase date."""

    def __init__(self, items: list[IncomingLot] | None = None) -> None:
        self._items = list(items or [])
        self._sort()

    def _sort(self) -> None:
        self._items.sort(key=lambda i: (i.purchase_date, i.created_at))

    def lots(self) -> list[IncomingLot]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(
        self,
        name: str,
        lot_code: str,
        purchase_date: date,
        supplier: str | None = None,
    ) -> IncomingLot:
        """Register a receipt.

        Raises:
            ValidationError: If name or lot code is blank.
        """
        name, lot_code = name.strip(), lot_code.strip()
        if not name or not lot_code:
            raise ValidationError("Compila Nome alimento, Data di acquisto e Lotto")
        item = IncomingLot(
            id=uuid.uuid4().hex,
            name=name,
            lot_code=lot_code,
            purchase_date=purchase_date,
            supplier=(supplier or "").strip() or None,
            created_at=time.time(),
        )
        self._items.append(item)
        self._sort()
        return item

    def update(self, item_id: str, **changes) -> IncomingLot:
        for i, item in enumerate(self._items):
            if item.id == item_id:
                updated = replace(item, **changes)
                self._items[i] = updated
                self._sort()
                return updated
        raise KeyError(item_id)

    def get(self, item_id: str) -> IncomingLot:
        for item in self._items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    def remove(self, item_id: str) -> bool:
        before = len(self._items)
        self._items = [i for i in self._items if i.id != item_id]
        return len(self._items) < before

    def grouped_by_name(self) -> dict[str, list[IncomingLot]]:
        """Lots per food name, most recent purchase first."""
        groups: dict[str, list[IncomingLot]] = defaultdict(list)
        for item in self._items:
            groups[item.name].append(item)
        for items in groups.values():
            items.sort(key=lambda i: (i.purchase_date, i.created_at), reverse=True)
        return dict(groups)

    def to_csv(self) -> str:
        """Export the registry as ``;``-separated CSV with standard quoting."""
        buf = io.StringIO()
        writer = csv.writer(buf, delimiter=";", lineterminator="\n")
        writer.writerow(INCOMING_CSV_HEADER)
        for item in self._items:
            writer.writerow([
                " ".join(item.name.split()),
                " ".join(item.lot_code.split()),
                item.purchase_date.strftime("%d/%m/%Y"),
                " ".join((item.supplier or "").split()),
            ])
        return buf.getvalue()

    @classmethod
    def load(cls, path: str | Path) -> IncomingRegistry:
        data = _read_json(path) or []
        return cls([IncomingLot.from_dict(item) for item in data])

    def dump(self, path: str | Path) -> None:
        _write_json(path, [i.to_dict() for i in self._items])


class TemplateCatalog:
    """Semi-finished product templates and their categories."""

    def __init__(
        self,
        templates: list[SemiProductTemplate] | None = None,
        categories: list[str] | None = None,
    ) -> None:
        if templates is None:
            templates = [replace(t, ingredients=list(t.ingredients)) for t in DEFAULT_TEMPLATES]
        self._templates = list(templates)
        self.categories = list(categories or DEFAULT_CATEGORIES)

    def templates(self) -> list[SemiProductTemplate]:
        return list(self._templates)

    def get(self, name: str) -> SemiProductTemplate | None:
        for t in self._templates:
            if t.name == name:
                return t
        return None

    def add(self, template: SemiProductTemplate) -> SemiProductTemplate:
        """Add a template.

        Raises:
            ValidationError: Blank or duplicate name, or no ingredients.
        """
        name = template.name.strip()
        if not name:
            raise ValidationError("Inserisci il nome del prodotto")
        if self.get(name) is not None:
            raise ValidationError(f"Il prodotto {name!r} esiste già")
        ingredients = [i.strip() for i in template.ingredients if i.strip()]
        if not ingredients:
            raise ValidationError("Aggiungi almeno un ingrediente")
        template = replace(template, name=name, ingredients=ingredients)
        self._templates.append(template)
        return template

    def remove(self, name: str) -> bool:
        """Delete a template for good. Ledger rows that used it are untouched."""
        before = len(self._templates)
        self._templates = [t for t in self._templates if t.name != name]
        return len(self._templates) < before

    def update(self, name: str, **changes) -> SemiProductTemplate:
        for i, t in enumerate(self._templates):
            if t.name == name:
                self._templates[i] = replace(t, **changes)
                return self._templates[i]
        raise KeyError(name)

    def add_ingredient(self, name: str, ingredient: str) -> SemiProductTemplate:
        template = self._require(name)
        return self.update(name, ingredients=[*template.ingredients, ingredient.strip()])

    def remove_ingredient(self, name: str, index: int) -> SemiProductTemplate:
        template = self._require(name)
        ingredients = list(template.ingredients)
        if 0 <= index < len(ingredients):
            del ingredients[index]
        return self.update(name, ingredients=ingredients)

    def _require(self, name: str) -> SemiProductTemplate:
        template = self.get(name)
        if template is None:
            raise KeyError(name)
        return template

    def add_category(self, name: str) -> None:
        name = name.strip()
        if name and name not in self.categories:
            self.categories.append(name)

    def rename_category(self, old: str, new: str) -> None:
        new = new.strip()
        if not new or old == new or old not in self.categories:
            return
        self.categories[self.categories.index(old)] = new
        self._templates = [
            replace(t, category=new) if t.category == old else t
            for t in self._templates
        ]

    def remove_category(self, name: str) -> None:
        self.categories = [c for c in self.categories if c != name]
        self._templates = [
            replace(t, category=None) if t.category == name else t
            for t in self._templates
        ]

    def ingredient_names(self, query: str | None = None) -> list[str]:
        """Distinct ingredient names across templates, for suggestions.

        Names differing only by case, accents or spacing collapse to the first
        spelling seen. ``query`` filters with the same normalisation.
        """
        seen: dict[str, str] = {}
        for t in self._templates:
            for ingredient in t.ingredients:
                original = ingredient.strip()
                if original:
                    seen.setdefault(normalize_name(original), original)
        names = sorted(seen.values(), key=normalize_name)
        if query and query.strip():
            q = normalize_name(query)
            names = [n for n in names if q in normalize_name(n)]
        return names

    @classmethod
    def load(cls, path: str | Path) -> TemplateCatalog:
        """Load the catalog; templates without a category become unassigned."""
        data = _read_json(path)
        if data is None:
            return cls()
        templates = [
            SemiProductTemplate.from_dict(t) for t in data.get("templates", [])
        ]
        templates = [
            t if t.category else replace(t, category=UNASSIGNED) for t in templates
        ]
        categories = data.get("categories") or list(DEFAULT_CATEGORIES)
        if UNASSIGNED not in categories:
            categories = [UNASSIGNED, *categories]
        return cls(templates, categories)

    def dump(self, path: str | Path) -> None:
        _write_json(path, {
            "templates": [t.to_dict() for t in self._templates],
            "categories": self.categories,
        })

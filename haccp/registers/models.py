"""Data models for daily records, incoming lots and semi-finished products."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timezone


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Temperatures:
    freezer: float  # -18 to -22 °C
    fridge1: float  # 0 to 4 °C
    fridge2: float  # 0 to 4 °C


# (field name, register label) in the order the register prints them
SANITATION_ITEMS: list[tuple[str, str]] = [
    ("equipment", "ATTREZZATURE"),
    ("surfaces", "SUPERFICI"),
    ("utensils", "UTENSILI"),
    ("floors", "PAVIMENTI"),
    ("refrigerators", "FRIGORIFERI"),
    ("walls", "PARETI"),
    ("lighting", "ILLUMINAZIONE"),
    ("doors", "PORTE"),
    ("shelves", "SCAFFALI"),
    ("toilets", "SERVIZI IGIENICI"),
    ("waste_containers", "CONTENITORI RIFIUTI"),
    ("ovens", "FORNI"),
]


@dataclass
class Sanitation:
    equipment: bool = True
    surfaces: bool = True
    utensils: bool = True
    floors: bool = True
    refrigerators: bool = True
    walls: bool = True
    lighting: bool = True
    doors: bool = True
    shelves: bool = True
    toilets: bool = True
    waste_containers: bool = True
    ovens: bool = True

    def items(self) -> list[tuple[str, bool]]:
        """Return ``(label, done)`` pairs in register order."""
        return [(label, getattr(self, name)) for name, label in SANITATION_ITEMS]


@dataclass
class DailyRecord:
    """One day of temperature readings and sanitation checks."""

    date: date
    temperatures: Temperatures
    sanitation: Sanitation = field(default_factory=Sanitation)
    notes: str = ""
    signature: str | None = None  # data URL (base64 PNG/JPEG)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "temperatures": asdict(self.temperatures),
            "cleaning": asdict(self.sanitation),
            "notes": self.notes,
            "signature": self.signature,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DailyRecord:
        known = {f.name for f in fields(Sanitation)}
        cleaning = {
            k: bool(v) for k, v in data.get("cleaning", {}).items() if k in known
        }
        temps = data["temperatures"]
        return cls(
            date=date.fromisoformat(data["date"]),
            temperatures=Temperatures(
                freezer=float(temps["freezer"]),
                fridge1=float(temps["fridge1"]),
                fridge2=float(temps["fridge2"]),
            ),
            sanitation=Sanitation(**cleaning),
            notes=data.get("notes") or "",
            signature=data.get("signature") or None,
            created_at=data.get("createdAt") or now_iso(),
            updated_at=data.get("updatedAt") or now_iso(),
        )


@dataclass
class CompanyInfo:
    name: str
    piva: str  # partita IVA
    address: str | None = None


@dataclass
class IncomingLot:
    """A single goods-receipt event."""

    id: str
    name: str
    lot_code: str
    purchase_date: date
    supplier: str | None = None
    created_at: float = 0.0  # epoch seconds, ordering tie-break

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nome": self.name,
            "lotto": self.lot_code,
            "dataAcquisto": self.purchase_date.isoformat(),
            "fornitore": self.supplier,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> IncomingLot:
        return cls(
            id=data["id"],
            name=data["nome"],
            lot_code=data["lotto"],
            purchase_date=date.fromisoformat(data["dataAcquisto"]),
            supplier=data.get("fornitore") or None,
            created_at=float(data.get("createdAt", 0.0)),
        )


@dataclass
class SemiProductTemplate:
    """A reusable recipe: the ingredients a semi-finished product needs."""

    name: str
    ingredients: list[str] = field(default_factory=list)
    category: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict:
        return {
            "nome": self.name,
            "categoria": self.category,
            "note": self.notes,
            "ingredienti": [{"nome": n} for n in self.ingredients],
        }

    @classmethod
    def from_dict(cls, data: dict) -> SemiProductTemplate:
        return cls(
            name=data["nome"],
            ingredients=[i["nome"] for i in data.get("ingredienti", [])],
            category=data.get("categoria") or None,
            notes=data.get("note") or None,
        )


@dataclass(frozen=True)
class IngredientLot:
    name: str
    lot_code: str


@dataclass
class ProductionRow:
    """One row of the semi-finished products ledger."""

    production_date: date | None  # None when a hand-edited cell is unreadable
    expiry_date: date | None
    product: str
    lot_code: str
    ingredients: list[IngredientLot] = field(default_factory=list)

"""Traceability check of production ingredients against incoming lots."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .errors import ValidationError
from .models import IncomingLot, IngredientLot


@dataclass
class TraceabilityResult:
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            detail = ", ".join(
                f"{name} (lotto {lot or 'mancante'})" for name, lot in self.failures
            )
            raise ValidationError(
                f"Lotti non registrati negli alimenti in ingresso: {detail}",
                failures=self.failures,
            )


def validate(
    ingredients: Iterable[IngredientLot],
    incoming_lots: Iterable[IncomingLot],
) -> TraceabilityResult:
    """Check that every ingredient matches an incoming lot exactly.

    Both the food name and the lot code must match; there is no
    case-insensitive or partial fallback.
    """
    registered = {(lot.name, lot.lot_code) for lot in incoming_lots}
    failures = [
        (ing.name, ing.lot_code or "")
        for ing in ingredients
        if not ing.lot_code or (ing.name, ing.lot_code) not in registered
    ]
    return TraceabilityResult(failures=failures)

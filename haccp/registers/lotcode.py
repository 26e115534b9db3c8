"""Product lot codes: a sigla from the product name plus the production date."""

from __future__ import annotations

import unicodedata
from datetime import date

from .ledger import lot_codes


def _letters(word: str) -> str:
    # Fold accents so "Crème" contributes "CR", not "CRÈ"
    decomposed = unicodedata.normalize("NFD", word)
    return "".join(
        ch for ch in decomposed if ch.isalpha() and not unicodedata.combining(ch)
    ).upper()


def sigla(product_name: str) -> str:
    """Return the alphabetic abbreviation of ``product_name``.

    One word gives its first three letters, several words give the first two
    letters of each of the first two words.

    Raises:
        ValueError: If the name contains no letters.
    """
    words = [w for w in (_letters(part) for part in product_name.split()) if w]
    if not words:
        raise ValueError(f"Nome prodotto senza lettere: {product_name!r}")
    if len(words) == 1:
        return words[0][:3]
    return words[0][:2] + words[1][:2]


def build_base_lot_code(product_name: str, day: date) -> str:
    """Build ``SIGLA + DDMMYY``, e.g. ``SABA211025`` for "Salsa base"."""
    return sigla(product_name) + day.strftime("%d%m%y")


def ensure_unique(base: str, ledger_text: str) -> str:
    """Return ``base``, or ``base`` with the first free integer suffix.

    The whole lot-code column is scanned, so codes are unique across every
    product in the ledger.
    """
    existing = lot_codes(ledger_text)
    if base not in existing:
        return base
    suffix = 2
    while f"{base}{suffix}" in existing:
        suffix += 1
    return f"{base}{suffix}"

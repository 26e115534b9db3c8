"""Semi-finished products ledger kept as a CSV file on the remote store.

Registration is a read-modify-write of the whole file with no version check:
two sessions appending at the same time can lose a row (last writer wins).
A single writer per ledger is assumed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from . import ledger as codec
from .catalogs import IncomingRegistry
from .errors import LedgerSchemaError, ValidationError
from .gdrive import DriveFile
from .lotcode import build_base_lot_code, ensure_unique
from .models import IngredientLot, ProductionRow
from .pdf import Document, render_ledger
from .sync import CSV_MIME, PDF_MIME, RegisterSync, upload_or_update
from .traceability import validate

logger = logging.getLogger(__name__)

LEDGER_PDF_NAME = "Registro_Semilavorati_aggiornato.pdf"


@dataclass
class ProductionRequest:
    """A batch about to be recorded. ``lot_code`` None means generate one."""

    product: str
    production_date: date
    expiry_date: date
    ingredients: list[IngredientLot] = field(default_factory=list)
    lot_code: str | None = None


class ProductionLedger:
    def __init__(
        self,
        sync: RegisterSync,
        file_name: str = codec.LEDGER_FILE_NAME,
        pdf_name: str = LEDGER_PDF_NAME,
        default_slots: int = codec.DEFAULT_SLOTS,
    ) -> None:
        self._sync = sync
        self._file_name = file_name
        self._pdf_name = pdf_name
        self._default_slots = default_slots

    async def _find(self) -> tuple[str, DriveFile | None]:
        root = await self._sync.root_id()
        return root, await self._sync.store.find_by_name(self._file_name, root)

    async def load(self) -> str:
        """Current ledger text, or an empty string if the file doesn't exist."""
        _, existing = await self._find()
        if existing is None:
            return ""
        data = await self._sync.store.download(existing.id)
        return data.decode("utf-8-sig")

    async def register(
        self, request: ProductionRequest, registry: IncomingRegistry
    ) -> ProductionRow:
        """Append a production batch to the ledger.

        Nothing is written unless every check passes. The ledger is created
        with a default header on the first registration.

        Returns:
            The row as written, with its final lot code.

        Raises:
            ValidationError: Missing product name or an ingredient lot not in
                the incoming goods registry.
            LedgerSchemaError: More ingredients than the ledger has slots, a
                malformed header, or a user-supplied lot code already in use.
        """
        product = request.product.strip()
        if not product:
            raise ValidationError("Seleziona il prodotto semilavorato")
        ingredients = [
            IngredientLot(i.name.strip(), i.lot_code.strip())
            for i in request.ingredients
            if i.name.strip()
        ]
        validate(ingredients, registry.lots()).raise_for_failures()

        root, existing = await self._find()
        if existing is None:
            text = codec.build_header(self._default_slots)
            slots = self._default_slots
            logger.info("Creating %s with %d ingredient slots", self._file_name, slots)
        else:
            text = (await self._sync.store.download(existing.id)).decode("utf-8-sig")
            if not text.strip():
                text = codec.build_header(self._default_slots)
            slots = codec.ledger_capacity(text)

        if len(ingredients) > slots:
            raise LedgerSchemaError(
                f"Il registro supporta al massimo {slots} ingredienti "
                f"({len(ingredients)} indicati)"
            )

        if request.lot_code and request.lot_code.strip():
            lot_code = request.lot_code.strip()
            if lot_code in codec.lot_codes(text):
                raise LedgerSchemaError(f"Il lotto {lot_code} è già presente nel registro")
        else:
            try:
                base = build_base_lot_code(product, request.production_date)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            lot_code = ensure_unique(base, text)

        row = ProductionRow(
            production_date=request.production_date,
            expiry_date=request.expiry_date,
            product=product,
            lot_code=lot_code,
            ingredients=ingredients,
        )
        updated = codec.append_row(text, row, slots)
        await upload_or_update(
            self._sync.store, self._file_name, updated.encode("utf-8"), root, CSV_MIME
        )
        logger.info("Registered %s lot %s", product, lot_code)
        return row

    async def render_pdf(self, today: date | None = None) -> Document:
        """Render the ledger as a PDF.

        Raises:
            ValidationError: If the ledger is missing or has no rows.
        """
        return render_ledger(await self.load(), today)

    async def upload_pdf(self, today: date | None = None) -> DriveFile:
        doc = await self.render_pdf(today)
        root = await self._sync.root_id()
        return await upload_or_update(
            self._sync.store, self._pdf_name, doc.content, root, PDF_MIME
        )

"""Publishing registers and the OSA signature to the remote store."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from .catalogs import IncomingRegistry
from .errors import RemoteIOError
from .gdrive import DriveFile, RemoteStore
from .models import CompanyInfo
from .pdf import (
    SANITATION,
    TEMPERATURE,
    Document,
    month_label,
    render_month,
)
from .records import RecordBook
from .signature import SignatureOptions

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
CSV_MIME = "text/csv"
SIGNATURE_SUFFIXES = (".png", ".jpg", ".jpeg")


async def upload_or_update(
    store: RemoteStore,
    name: str,
    data: bytes,
    parent_id: str | None,
    mime_type: str = PDF_MIME,
) -> DriveFile:
    """Write ``name`` under ``parent_id``, replacing a same-named file.

    The existing file is updated in place. If that fails it is deleted and
    uploaded again; a failed delete is logged and the upload still runs.
    """
    existing = await store.find_by_name(name, parent_id)
    if existing is None:
        return await store.upload(name, data, parent_id, mime_type)
    try:
        return await store.update(existing.id, data, mime_type)
    except RemoteIOError as e:
        logger.warning("Update of %s failed (%s), uploading a new copy", name, e)
        try:
            await store.delete(existing.id)
        except RemoteIOError:
            logger.warning("Could not delete stale %s", name, exc_info=True)
        return await store.upload(name, data, parent_id, mime_type)


def _is_signature(file: DriveFile) -> bool:
    return not file.is_folder and file.name.lower().endswith(SIGNATURE_SUFFIXES)


class RegisterSync:
    """Folder layout and uploads for the monthly registers.

    Layout::

        HACCP_Registri/
            Firma_OSA/firma_osa.png
            ottobre 2025/HACCP_Temperature_ottobre_2025.pdf
            HACCP_Temperature_ottobre_2025.pdf   (scheduled update)
            Registro_Semilavorati.csv
    """

    def __init__(
        self,
        store: RemoteStore,
        company: CompanyInfo,
        root_folder: str = "HACCP_Registri",
        signature_folder: str = "Firma_OSA",
        options: SignatureOptions | None = None,
    ) -> None:
        self._store = store
        self._company = company
        self._root_folder = root_folder
        self._signature_folder = signature_folder
        self._options = options
        self._root_id: str | None = None
        self._signature: bytes | None = None
        self._signature_loaded = False

    @property
    def store(self) -> RemoteStore:
        return self._store

    async def _find_or_create(self, name: str, parent_id: str | None) -> str:
        folder = await self._store.find_by_name(name, parent_id)
        if folder is not None and folder.is_folder:
            return folder.id
        return (await self._store.create_folder(name, parent_id)).id

    async def root_id(self) -> str:
        if self._root_id is None:
            self._root_id = await self._find_or_create(self._root_folder, None)
        return self._root_id

    async def month_folder_id(self, year: int, month: int) -> str:
        return await self._find_or_create(month_label(year, month), await self.root_id())

    async def _signature_folder_id(self, create: bool = False) -> str | None:
        root = await self.root_id()
        folder = await self._store.find_by_name(self._signature_folder, root)
        if folder is not None:
            return folder.id
        if not create:
            return None
        return (await self._store.create_folder(self._signature_folder, root)).id

    async def fetch_signature(self) -> bytes | None:
        """Bytes of the first PNG/JPEG in the signature folder, or None.

        The result, including a miss, is cached for the life of this object.
        """
        if self._signature_loaded:
            return self._signature
        folder_id = await self._signature_folder_id()
        data = None
        if folder_id is not None:
            files = await self._store.list(folder_id)
            match = next((f for f in files if _is_signature(f)), None)
            if match is not None:
                data = await self._store.download(match.id)
        self._signature = data
        self._signature_loaded = True
        if data is None:
            logger.info("No OSA signature on the remote store")
        return data

    async def upload_signature(self, data: bytes, extension: str = "png") -> DriveFile:
        """Replace the stored OSA signature with ``data``."""
        extension = extension.lstrip(".").lower() or "png"
        mime_type = "image/jpeg" if extension in ("jpg", "jpeg") else "image/png"
        folder_id = await self._signature_folder_id(create=True)
        await self.delete_signature()
        file = await self._store.upload(
            f"firma_osa.{extension}", data, folder_id, mime_type
        )
        self._signature = data
        self._signature_loaded = True
        return file

    async def delete_signature(self) -> int:
        folder_id = await self._signature_folder_id()
        removed = 0
        if folder_id is not None:
            for f in await self._store.list(folder_id):
                if _is_signature(f):
                    await self._store.delete(f.id)
                    removed += 1
        self._signature = None
        self._signature_loaded = True
        return removed

    async def _render_pair(
        self, book: RecordBook, year: int, month: int
    ) -> list[Document]:
        records = book.by_month(year, month)
        return [
            await render_month(
                kind, records, self._company, year, month,
                self.fetch_signature, self._options,
            )
            for kind in (TEMPERATURE, SANITATION)
        ]

    async def upload_month(
        self, book: RecordBook, year: int, month: int
    ) -> list[DriveFile]:
        """Render and publish both registers into the month's folder.

        Returns an empty list when the month has no records.
        """
        if not book.by_month(year, month):
            logger.info("No records for %s, nothing to upload", month_label(year, month))
            return []
        folder_id = await self.month_folder_id(year, month)
        uploaded = []
        for doc in await self._render_pair(book, year, month):
            uploaded.append(
                await upload_or_update(self._store, doc.filename, doc.content, folder_id)
            )
        logger.info("Uploaded registers for %s", month_label(year, month))
        return uploaded

    async def upload_all(self, book: RecordBook) -> int:
        """Publish every month with records, one after another.

        Months already uploaded stay uploaded if a later one fails.

        Returns:
            Number of months uploaded.
        """
        months = book.months()
        for i, (year, month) in enumerate(months, start=1):
            await self.upload_month(book, year, month)
            logger.info("Upload progress: %d/%d months", i, len(months))
            await asyncio.sleep(0)
        return len(months)

    async def update_current_month(
        self, book: RecordBook, today: date | None = None
    ) -> list[DriveFile]:
        """Refresh the current month's registers in the root folder."""
        today = today or date.today()
        root = await self.root_id()
        uploaded = []
        for doc in await self._render_pair(book, today.year, today.month):
            uploaded.append(
                await upload_or_update(self._store, doc.filename, doc.content, root)
            )
        logger.info("Scheduled update done for %s", month_label(today.year, today.month))
        return uploaded

    async def upload_incoming(
        self,
        registry: IncomingRegistry,
        file_name: str = "Registro_Alimenti_Ingresso.csv",
    ) -> DriveFile:
        root = await self.root_id()
        data = registry.to_csv().encode("utf-8")
        return await upload_or_update(self._store, file_name, data, root, CSV_MIME)

"""ZIP bundle of the monthly registers for the "download everything" action."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterable

from .models import CompanyInfo
from .pdf import (
    SANITATION,
    TEMPERATURE,
    Document,
    SignatureProvider,
    render_month,
)
from .records import RecordBook
from .signature import SignatureOptions

logger = logging.getLogger(__name__)


def package(documents: Iterable[Document]) -> bytes:
    """Write ``documents`` into a flat ZIP archive.

    Entries are named by document kind and month key
    (``HACCP_Temperature_2025-10.pdf``) and ordered by month. A later document
    with the same entry name replaces an earlier one.
    """
    entries: dict[str, bytes] = {}
    ordered = sorted(documents, key=lambda d: (d.year, d.month, d.day or 0))
    for doc in ordered:
        entries[doc.archive_name] = doc.content

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    logger.info("Packaged %d documents", len(entries))
    return buf.getvalue()


async def build_archive(
    book: RecordBook,
    company: CompanyInfo,
    signature: SignatureProvider | None = None,
    options: SignatureOptions | None = None,
) -> bytes:
    """Render both monthly registers for every month with records and zip them."""
    documents: list[Document] = []
    for year, month in book.months():
        records = book.by_month(year, month)
        for kind in (TEMPERATURE, SANITATION):
            documents.append(
                await render_month(
                    kind, records, company, year, month, signature, options
                )
            )
    return package(documents)

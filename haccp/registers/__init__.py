"""HACCP registers: daily temperature and sanitation records, the
semi-finished products ledger with lot traceability, and their PDF rendering.
"""

from .archive import build_archive, package
from .catalogs import IncomingRegistry, TemplateCatalog
from .config import HaccpConfig, load_config
from .errors import (
    HaccpError,
    LedgerSchemaError,
    NotConnectedError,
    RemoteIOError,
    RenderError,
    ValidationError,
)
from .ledger import append_row, build_header, parse_ledger, read_capacity
from .lotcode import build_base_lot_code, ensure_unique
from .models import (
    CompanyInfo,
    DailyRecord,
    IncomingLot,
    IngredientLot,
    ProductionRow,
    Sanitation,
    SemiProductTemplate,
    Temperatures,
)
from .pdf import Document, render_day, render_ledger, render_month
from .records import RecordBook, generate_records
from .signature import Rect, SignatureOptions, composite_into
from .traceability import validate

__all__ = [
    "CompanyInfo",
    "DailyRecord",
    "Document",
    "HaccpConfig",
    "HaccpError",
    "IncomingLot",
    "IncomingRegistry",
    "IngredientLot",
    "LedgerSchemaError",
    "NotConnectedError",
    "ProductionRow",
    "RecordBook",
    "Rect",
    "RemoteIOError",
    "RenderError",
    "Sanitation",
    "SemiProductTemplate",
    "SignatureOptions",
    "TemplateCatalog",
    "Temperatures",
    "ValidationError",
    "append_row",
    "build_archive",
    "build_base_lot_code",
    "build_header",
    "composite_into",
    "ensure_unique",
    "generate_records",
    "load_config",
    "package",
    "parse_ledger",
    "read_capacity",
    "render_day",
    "render_ledger",
    "render_month",
    "validate",
]

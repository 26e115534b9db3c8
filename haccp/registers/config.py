"""TOML configuration loader for the HACCP registers."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .signature import SignatureOptions

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

DEFAULT_DATA_DIR = "~/.local/share/haccp"


@dataclass
class StorageConfig:
    data_dir: str = DEFAULT_DATA_DIR

    @property
    def root(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def records_path(self) -> Path:
        return self.root / "records.json"

    @property
    def incoming_path(self) -> Path:
        return self.root / "incoming.json"

    @property
    def templates_path(self) -> Path:
        return self.root / "templates.json"

    @property
    def settings_path(self) -> Path:
        return self.root / "settings.json"


@dataclass
class GDriveConfig:
    enabled: bool = False
    credentials_path: str = "~/.config/haccp/gdrive_credentials.json"
    token_path: str = "~/.config/haccp/gdrive_token.json"
    root_folder: str = "HACCP_Registri"
    signature_folder: str = "Firma_OSA"


@dataclass
class LedgerConfig:
    file_name: str = "Registro_Semilavorati.csv"
    pdf_name: str = "Registro_Semilavorati_aggiornato.pdf"
    incoming_name: str = "Registro_Alimenti_Ingresso.csv"
    default_slots: int = 10


@dataclass
class SignatureConfig:
    margin: float = 0.8
    scale: float = 0.9
    center: bool = True
    trim: bool = True
    white_threshold: int = 250
    alpha_threshold: int = 10

    def options(self) -> SignatureOptions:
        return SignatureOptions(
            margin=self.margin,
            center=self.center,
            scale=self.scale,
            trim=self.trim,
            white_threshold=self.white_threshold,
            alpha_threshold=self.alpha_threshold,
        )


@dataclass
class SchedulerConfig:
    enabled: bool = False
    time: str = "20:00"  # HH:MM, local time


@dataclass
class HaccpConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    gdrive: GDriveConfig = field(default_factory=GDriveConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    signature: SignatureConfig = field(default_factory=SignatureConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def load_config(path: str | Path | None = None) -> HaccpConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The data directory can be overridden with ``HACCP_DATA_DIR``.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path).expanduser()
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli è necessario su Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    sto = raw.get("storage", {})
    gdr = raw.get("gdrive", {})
    led = raw.get("ledger", {})
    sig = raw.get("signature", {})
    sch = raw.get("scheduler", {})

    data_dir = os.environ.get("HACCP_DATA_DIR", "") or sto.get(
        "data_dir", DEFAULT_DATA_DIR
    )

    defaults = HaccpConfig()
    return HaccpConfig(
        storage=StorageConfig(data_dir=data_dir),
        gdrive=GDriveConfig(
            enabled=gdr.get("enabled", defaults.gdrive.enabled),
            credentials_path=gdr.get(
                "credentials_path", defaults.gdrive.credentials_path
            ),
            token_path=gdr.get("token_path", defaults.gdrive.token_path),
            root_folder=gdr.get("root_folder", defaults.gdrive.root_folder),
            signature_folder=gdr.get(
                "signature_folder", defaults.gdrive.signature_folder
            ),
        ),
        ledger=LedgerConfig(
            file_name=led.get("file_name", defaults.ledger.file_name),
            pdf_name=led.get("pdf_name", defaults.ledger.pdf_name),
            incoming_name=led.get("incoming_name", defaults.ledger.incoming_name),
            default_slots=led.get("default_slots", defaults.ledger.default_slots),
        ),
        signature=SignatureConfig(
            margin=sig.get("margin", defaults.signature.margin),
            scale=sig.get("scale", defaults.signature.scale),
            center=sig.get("center", defaults.signature.center),
            trim=sig.get("trim", defaults.signature.trim),
            white_threshold=sig.get(
                "white_threshold", defaults.signature.white_threshold
            ),
            alpha_threshold=sig.get(
                "alpha_threshold", defaults.signature.alpha_threshold
            ),
        ),
        scheduler=SchedulerConfig(
            enabled=sch.get("enabled", defaults.scheduler.enabled),
            time=sch.get("time", defaults.scheduler.time),
        ),
    )

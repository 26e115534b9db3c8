"""Site settings: company header data and the default OSA signature."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .models import CompanyInfo


@dataclass
class Settings:
    company: CompanyInfo = field(
        default_factory=lambda: CompanyInfo(name="", piva="")
    )
    default_signature: str | None = None  # data: URL


def load_settings(path: str | Path) -> Settings:
    path = Path(path).expanduser()
    if not path.exists():
        return Settings()
    raw = json.loads(path.read_text(encoding="utf-8"))
    company = raw.get("company") or {}
    return Settings(
        company=CompanyInfo(
            name=company.get("name", ""),
            piva=company.get("piva", ""),
            address=company.get("address"),
        ),
        default_signature=raw.get("defaultSignature"),
    )


def save_settings(settings: Settings, path: str | Path) -> None:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "company": {
            "name": settings.company.name,
            "piva": settings.company.piva,
            "address": settings.company.address,
        },
        "defaultSignature": settings.default_signature,
    }
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

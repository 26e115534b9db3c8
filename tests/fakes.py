"""Test doubles shared across the suite."""

from __future__ import annotations

import io
from datetime import date

from PIL import Image, ImageDraw

from haccp.registers.errors import RemoteIOError
from haccp.registers.gdrive import FOLDER_MIME, DriveFile
from haccp.registers.models import DailyRecord, Sanitation, Temperatures


class FakeStore:
    """RemoteStore keeping files in a dict. Set ``fail_update`` to simulate
    a rejected in-place update."""

    def __init__(self) -> None:
        self.files: dict[str, dict] = {}
        self.fail_update = False
        self.calls: list[tuple[str, str]] = []
        self._next_id = 0

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id{self._next_id}"

    def _file(self, file_id: str) -> DriveFile:
        f = self.files[file_id]
        return DriveFile(id=file_id, name=f["name"], mime_type=f["mime"])

    async def find_by_name(self, name, parent_id=None):
        self.calls.append(("find", name))
        for file_id, f in self.files.items():
            if f["name"] == name and (parent_id is None or f["parent"] == parent_id):
                return self._file(file_id)
        return None

    async def create_folder(self, name, parent_id=None):
        self.calls.append(("create_folder", name))
        file_id = self._new_id()
        self.files[file_id] = {
            "name": name, "parent": parent_id, "mime": FOLDER_MIME, "data": b"",
        }
        return self._file(file_id)

    async def upload(self, name, data, parent_id=None, mime_type="application/pdf"):
        self.calls.append(("upload", name))
        file_id = self._new_id()
        self.files[file_id] = {
            "name": name, "parent": parent_id, "mime": mime_type, "data": data,
        }
        return self._file(file_id)

    async def update(self, file_id, data, mime_type="application/pdf"):
        self.calls.append(("update", file_id))
        if self.fail_update or file_id not in self.files:
            raise RemoteIOError(f"update of {file_id} rejected")
        self.files[file_id]["data"] = data
        return self._file(file_id)

    async def download(self, file_id):
        self.calls.append(("download", file_id))
        if file_id not in self.files:
            raise RemoteIOError(f"no such file {file_id}")
        return self.files[file_id]["data"]

    async def delete(self, file_id):
        self.calls.append(("delete", file_id))
        self.files.pop(file_id, None)

    async def list(self, parent_id=None):
        return [
            self._file(file_id)
            for file_id, f in self.files.items()
            if parent_id is None or f["parent"] == parent_id
        ]

    # helpers for assertions

    def named(self, name: str) -> list[dict]:
        return [f for f in self.files.values() if f["name"] == name]

    def content(self, name: str) -> bytes:
        (f,) = self.named(name)
        return f["data"]


def make_record(day: date, signature: str | None = None, **sanitation) -> DailyRecord:
    return DailyRecord(
        date=day,
        temperatures=Temperatures(freezer=-19.5, fridge1=2.0, fridge2=3.4),
        sanitation=Sanitation(**sanitation),
        signature=signature,
    )


def signature_png(size=(400, 200), stroke=((100, 80), (300, 120))) -> bytes:
    """A white canvas with one black stroke, like a hand signature."""
    img = Image.new("RGBA", size, (255, 255, 255, 255))
    ImageDraw.Draw(img).line(stroke, fill=(0, 0, 0, 255), width=6)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


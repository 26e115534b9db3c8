"""Google Drive storage for the registers via OAuth 2.0."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .errors import HaccpError, NotConnectedError, RemoteIOError

logger = logging.getLogger(__name__)

FOLDER_MIME = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class DriveFile:
    id: str
    name: str
    mime_type: str = ""

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME


class RemoteStore(Protocol):
    """Hierarchical object store holding the generated registers."""

    async def find_by_name(
        self, name: str, parent_id: str | None = None
    ) -> DriveFile | None: ...

    async def create_folder(
        self, name: str, parent_id: str | None = None
    ) -> DriveFile: ...

    async def upload(
        self, name: str, data: bytes, parent_id: str | None, mime_type: str
    ) -> DriveFile: ...

    async def update(self, file_id: str, data: bytes, mime_type: str) -> DriveFile: ...

    async def download(self, file_id: str) -> bytes: ...

    async def delete(self, file_id: str) -> None: ...

    async def list(self, parent_id: str | None = None) -> list[DriveFile]: ...


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _to_file(item: dict) -> DriveFile:
    return DriveFile(
        id=item["id"], name=item.get("name", ""), mime_type=item.get("mimeType", "")
    )


_INSTALL_HINT = (
    "Per Google Drive servono pacchetti aggiuntivi:\n"
    "  pip install 'haccp-registers[gdrive]'"
)


class GoogleDriveStore:
    """Google Drive v3 implementation of :class:`RemoteStore`.

    On first use, opens a browser for Google account authorization unless
    ``interactive`` is False. The token is saved for subsequent use. The
    Drive client is blocking; every call runs in a worker thread.
    """

    SCOPES = ["https://www.googleapis.com/auth/drive.file"]

    def __init__(
        self,
        credentials_path: str | Path = "~/.config/haccp/gdrive_credentials.json",
        token_path: str | Path = "~/.config/haccp/gdrive_token.json",
        interactive: bool = True,
    ) -> None:
        self._credentials_path = Path(credentials_path).expanduser()
        self._token_path = Path(token_path).expanduser()
        self._interactive = interactive
        self._service = None

    @classmethod
    def from_config(cls, config, interactive: bool = True) -> GoogleDriveStore:
        return cls(
            credentials_path=config.gdrive.credentials_path,
            token_path=config.gdrive.token_path,
            interactive=interactive,
        )

    def _get_service(self):
        """Build and return the Drive API service, authenticating if needed."""
        if self._service is not None:
            return self._service

        try:
            from google.auth.exceptions import RefreshError
            from google.auth.transport.requests import Request
            from google.oauth2.credentials import Credentials
            from google_auth_oauthlib.flow import InstalledAppFlow
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(_INSTALL_HINT)

        creds = None

        # Load saved token
        if self._token_path.exists():
            creds = Credentials.from_authorized_user_file(
                str(self._token_path), self.SCOPES
            )

        # Refresh or get new credentials
        if creds is None or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                try:
                    creds.refresh(Request())
                except RefreshError as e:
                    logger.warning("Saved Drive token rejected: %s", e)
                    if not self._interactive:
                        raise NotConnectedError(
                            "Sessione Google Drive scaduta: esegui di nuovo "
                            "'haccp-registri sync login'"
                        ) from e
                    creds = None
            if creds is None or not creds.valid:
                if not self._interactive:
                    raise NotConnectedError(
                        "Google Drive non connesso: esegui prima "
                        "'haccp-registri sync login'"
                    )
                if not self._credentials_path.exists():
                    raise FileNotFoundError(
                        f"File credenziali OAuth non trovato: "
                        f"{self._credentials_path}\n"
                        f"Scaricalo dalla Google Cloud Console."
                    )
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self._credentials_path), self.SCOPES
                )
                creds = flow.run_local_server(port=0)

            # Save token for next time
            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            self._token_path.write_text(creds.to_json())

        self._service = build("drive", "v3", credentials=creds)
        return self._service

    async def connect(self) -> None:
        """Authenticate now rather than on the first request."""
        await self._run("connect", self._get_service)

    async def _run(self, what: str, fn):
        try:
            from googleapiclient.errors import HttpError
        except ImportError:
            raise ImportError(_INSTALL_HINT)
        try:
            return await asyncio.to_thread(fn)
        except HaccpError:
            raise
        except (HttpError, OSError) as e:
            logger.error("Drive %s failed: %s", what, e)
            raise RemoteIOError(f"Errore Google Drive ({what}): {e}") from e

    async def list(self, parent_id: str | None = None) -> list[DriveFile]:
        """Non-trashed files in ``parent_id`` (or anywhere), newest first."""
        query = "trashed = false"
        if parent_id:
            query += f" and '{_quote(parent_id)}' in parents"

        def call() -> list[DriveFile]:
            service = self._get_service()
            files: list[DriveFile] = []
            page_token = None
            while True:
                result = (
                    service.files()
                    .list(
                        q=query,
                        fields="nextPageToken, files(id, name, mimeType)",
                        orderBy="modifiedTime desc",
                        pageToken=page_token,
                    )
                    .execute()
                )
                files.extend(_to_file(f) for f in result.get("files", []))
                page_token = result.get("nextPageToken")
                if not page_token:
                    return files

        return await self._run("list", call)

    async def find_by_name(
        self, name: str, parent_id: str | None = None
    ) -> DriveFile | None:
        query = f"name = '{_quote(name)}' and trashed = false"
        if parent_id:
            query += f" and '{_quote(parent_id)}' in parents"

        def call() -> DriveFile | None:
            result = (
                self._get_service()
                .files()
                .list(q=query, fields="files(id, name, mimeType)", pageSize=1)
                .execute()
            )
            files = result.get("files", [])
            return _to_file(files[0]) if files else None

        return await self._run("find", call)

    async def create_folder(
        self, name: str, parent_id: str | None = None
    ) -> DriveFile:
        metadata: dict = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id:
            metadata["parents"] = [parent_id]

        def call() -> DriveFile:
            result = (
                self._get_service()
                .files()
                .create(body=metadata, fields="id, name, mimeType")
                .execute()
            )
            return _to_file(result)

        folder = await self._run("create_folder", call)
        logger.info("Created Drive folder %s (%s)", name, folder.id)
        return folder

    async def upload(
        self,
        name: str,
        data: bytes,
        parent_id: str | None = None,
        mime_type: str = "application/pdf",
    ) -> DriveFile:
        """Upload ``data`` as a new file.

        Returns:
            The created file.
        """
        metadata: dict = {"name": name}
        if parent_id:
            metadata["parents"] = [parent_id]

        def call() -> DriveFile:
            from googleapiclient.http import MediaIoBaseUpload

            media = MediaIoBaseUpload(
                io.BytesIO(data), mimetype=mime_type, resumable=True
            )
            result = (
                self._get_service()
                .files()
                .create(body=metadata, media_body=media, fields="id, name, mimeType")
                .execute()
            )
            return _to_file(result)

        file = await self._run("upload", call)
        logger.info("Uploaded %s (%d bytes)", name, len(data))
        return file

    async def update(
        self, file_id: str, data: bytes, mime_type: str = "application/pdf"
    ) -> DriveFile:
        """Replace the content of an existing file, keeping its id."""

        def call() -> DriveFile:
            from googleapiclient.http import MediaIoBaseUpload

            media = MediaIoBaseUpload(
                io.BytesIO(data), mimetype=mime_type, resumable=True
            )
            result = (
                self._get_service()
                .files()
                .update(fileId=file_id, media_body=media, fields="id, name, mimeType")
                .execute()
            )
            return _to_file(result)

        return await self._run("update", call)

    async def download(self, file_id: str) -> bytes:
        def call() -> bytes:
            return self._get_service().files().get_media(fileId=file_id).execute()

        return await self._run("download", call)

    async def delete(self, file_id: str) -> None:
        def call() -> None:
            self._get_service().files().delete(fileId=file_id).execute()

        await self._run("delete", call)

import logging
from typing import Any, Dict, List, Optional

from app.integrations.google.api_client import GoogleApiClient

logger = logging.getLogger(__name__)

FILES_PATH = "/drive/v3/files"
UPLOAD_PATH = "/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = (
    "id, name, mimeType, size, modifiedTime, createdTime, webViewLink, "
    "iconLink, thumbnailLink, parents, starred, trashed"
)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveService:
    def __init__(self, client: GoogleApiClient) -> None:
        self._client = client

    async def list_files(
        self,
        folder_id: Optional[str] = None,
        query: Optional[str] = None,
        page_size: int = 50,
        page_token: Optional[str] = None,
        order_by: str = "modifiedTime desc",
    ) -> Dict[str, Any]:
        clauses = ["trashed = false"]
        if folder_id:
            clauses.insert(0, f"'{_escape(folder_id)}' in parents")
        if query:
            clauses.append(query)
        data = await self._client.get(
            FILES_PATH,
            params={
                "q": " and ".join(clauses),
                "pageSize": page_size,
                "pageToken": page_token,
                "orderBy": order_by,
                "fields": f"nextPageToken, files({FILE_FIELDS})",
            },
        )
        return {"files": data.get("files") or [], "next_page_token": data.get("nextPageToken")}

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        return await self._client.get(f"{FILES_PATH}/{file_id}", params={"fields": FILE_FIELDS})

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]
        return await self._client.post(FILES_PATH, body, params={"fields": FILE_FIELDS})

    async def upload_file(
        self,
        name: str,
        data: bytes,
        mime_type: str,
        parent_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]
        return await self._client.upload_multipart(
            UPLOAD_PATH, metadata, data, mime_type, params={"fields": FILE_FIELDS}
        )

    async def rename(self, file_id: str, name: str) -> Dict[str, Any]:
        return await self._client.patch(f"{FILES_PATH}/{file_id}", {"name": name})

    async def move(self, file_id: str, new_parent_id: str, old_parent_id: Optional[str] = None) -> Dict[str, Any]:
        return await self._client.patch(
            f"{FILES_PATH}/{file_id}",
            {},
            params={"addParents": new_parent_id, "removeParents": old_parent_id},
        )

    async def trash(self, file_id: str) -> Dict[str, Any]:
        return await self._client.patch(f"{FILES_PATH}/{file_id}", {"trashed": True})

    async def delete(self, file_id: str) -> None:
        await self._client.delete(f"{FILES_PATH}/{file_id}")

    async def star(self, file_id: str, starred: bool = True) -> Dict[str, Any]:
        return await self._client.patch(f"{FILES_PATH}/{file_id}", {"starred": starred})

    async def search(self, text: str, page_size: int = 50) -> List[Dict[str, Any]]:
        result = await self.list_files(query=f"name contains '{_escape(text)}'", page_size=page_size)
        return result["files"]

    async def get_recent_files(self, page_size: int = 20) -> List[Dict[str, Any]]:
        result = await self.list_files(page_size=page_size, order_by="viewedByMeTime desc")
        return result["files"]

import json
from typing import Dict, List, Optional

import httpx
import pytest

from dal.image_dal import ImageDAL
from models.gateway_config import GatewayConfig
from models.image_record import BackendTag
from services.storage.backend_factory import StorageBindings
from services.storage.object_store_backend import LocalObjectStore
from utils.database_init import AsyncDatabaseInitializer

BOT_TOKEN = "123:TEST"
CHAT_ID = "-100500"
ORIGIN = "https://img.example.com"


def _multipart_field(request: httpx.Request, field: str) -> Optional[bytes]:
    """Pull one part's body out of a multipart request."""
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=", 1)[1].encode()
    for part in request.content.split(b"--" + boundary):
        head, sep, body = part.partition(b"\r\n\r\n")
        if sep and f'name="{field}"'.encode() in head:
            return body[:-2] if body.endswith(b"\r\n") else body
    return None


class FakeRelay:
    """In-memory stand-in for the Telegram bot API, served through httpx.MockTransport."""

    def __init__(self, token: str = BOT_TOKEN, reply_field: str = "document") -> None:
        self.token = token
        self.reply_field = reply_field
        self.files: Dict[str, bytes] = {}
        self.messages: Dict[int, str] = {}
        self.deleted_messages: List[int] = []
        self.sent_fields: List[str] = []
        self.download_content_type = "application/octet-stream"
        self.reject_uploads = False
        self.download_status = 200
        self._next_message_id = 100

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == f"/bot{self.token}/sendDocument":
            return self._send_document(request)
        if path == f"/bot{self.token}/getFile":
            file_id = request.url.params.get("file_id")
            if file_id not in self.files:
                return httpx.Response(400, json={"ok": False, "error_code": 400, "description": "Bad Request: invalid file_id"})
            return httpx.Response(200, json={"ok": True, "result": {"file_id": file_id, "file_path": f"documents/{file_id}"}})
        if path.startswith(f"/file/bot{self.token}/documents/"):
            file_id = path.rsplit("/", 1)[-1]
            if file_id not in self.files:
                return httpx.Response(404)
            if self.download_status != 200:
                return httpx.Response(self.download_status, text="upstream failure")
            return httpx.Response(200, content=self.files[file_id], headers={"content-type": self.download_content_type})
        if path == f"/bot{self.token}/deleteMessage":
            body = json.loads(request.content)
            message_id = body["message_id"]
            if message_id not in self.messages:
                return httpx.Response(400, json={"ok": False, "description": "Bad Request: message to delete not found"})
            self.deleted_messages.append(message_id)
            self.files.pop(self.messages.pop(message_id), None)
            return httpx.Response(200, json={"ok": True, "result": True})
        return httpx.Response(404, json={"ok": False, "description": "Not Found"})

    def _send_document(self, request: httpx.Request) -> httpx.Response:
        if self.reject_uploads:
            return httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"})
        self.sent_fields.append("document" if _multipart_field(request, "document") is not None else "other")
        data = _multipart_field(request, "document") or b""
        message_id = self._next_message_id
        self._next_message_id += 1
        file_id = f"BQACAgTEST{message_id}"
        self.files[file_id] = data
        self.messages[message_id] = file_id

        result = {"message_id": message_id, "chat": {"id": int(CHAT_ID)}}
        if self.reply_field == "photo":
            result["photo"] = [{"file_id": "thumbnail-size"}, {"file_id": file_id}]
        else:
            result[self.reply_field] = {"file_id": file_id, "file_unique_id": f"u{message_id}"}
        return httpx.Response(200, json={"ok": True, "result": result})


@pytest.fixture
def db_initializer(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path / "db"))
    return AsyncDatabaseInitializer(reset=True)


@pytest.fixture
def image_dal(db_initializer):
    return ImageDAL(db_initializer)


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(tmp_path / "blobs")


@pytest.fixture
def fake_relay():
    return FakeRelay()


@pytest.fixture
def bindings(fake_relay, object_store):
    return StorageBindings(http_client=fake_relay.client(), object_store=object_store, timeout=5.0)


@pytest.fixture
def make_config():
    """Build a request config with the given active backend."""

    def _make(backend: BackendTag, with_relay: bool = True) -> GatewayConfig:
        return GatewayConfig(
            storage_backend=backend,
            origin=ORIGIN,
            tg_bot_token=BOT_TOKEN if with_relay else None,
            tg_chat_id=CHAT_ID if with_relay else None,
        )

    return _make

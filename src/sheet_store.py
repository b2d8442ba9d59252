"""Where uploaded images and split sheets are kept, addressed by URL."""

import base64
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from config import Config

log = logging.getLogger(__name__)


def make_upload_key(user_id: str, timestamp: int, filename: str) -> str:
    return f"{user_id}/{timestamp}-{PurePosixPath(filename).name}"


def make_sheet_key(user_id: str, timestamp: int, page_number: int) -> str:
    return f"{user_id}/split-{timestamp}-page-{page_number}.png"


class SheetStore(ABC):
    """Stores bytes under a key and hands back an address to retrieve them."""

    @abstractmethod
    def store(self, data: bytes, key: str, content_type: str = "image/png") -> str:
        pass

    @abstractmethod
    def load(self, address: str) -> bytes:
        pass

    @abstractmethod
    def delete(self, address: str) -> None:
        pass


class LocalSheetStore(SheetStore):
    """Files under a root directory, addressed by file:// URIs."""

    def __init__(self, root_dir: Union[str, Path]) -> None:
        self.root_dir = Path(root_dir)

    def _path_for_key(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or ".." in parts or PurePosixPath(key).is_absolute():
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root_dir.joinpath(*parts)

    def _path_for_address(self, address: str) -> Path:
        parsed = urlparse(address)
        if parsed.scheme != "file":
            raise ValueError(f"Not a local address: {address}")
        path = Path(unquote(parsed.path)).resolve()
        if self.root_dir.resolve() not in path.parents:
            raise ValueError(f"Address outside of store: {address}")
        return path

    def store(self, data: bytes, key: str, content_type: str = "image/png") -> str:
        path = self._path_for_key(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        log.debug(f"Stored {len(data)} bytes ({content_type}) at {path}")
        return path.resolve().as_uri()

    def load(self, address: str) -> bytes:
        return self._path_for_address(address).read_bytes()

    def delete(self, address: str) -> None:
        path = self._path_for_address(address)
        if path.exists():
            path.unlink()
            log.debug(f"Deleted {path}")


class InlineSheetStore(SheetStore):
    """Keeps nothing: the address is the data itself, as a base64 data URL."""

    def store(self, data: bytes, key: str, content_type: str = "image/png") -> str:
        encoded = base64.b64encode(data).decode("utf-8")
        log.debug(f"Encoded {key} inline: {len(encoded)} chars")
        return f"data:{content_type};base64,{encoded}"

    def load(self, address: str) -> bytes:
        header, sep, payload = address.partition(",")
        if not address.startswith("data:") or not sep:
            raise ValueError("Not a data URL")
        return base64.b64decode(payload)

    def delete(self, address: str) -> None:
        return None


def get_sheet_store(config: Optional[Config] = None) -> SheetStore:
    config = config or Config()
    if config.DEBUG_MODE:
        log.info("[DEBUG MODE] Sheets kept inline as base64, nothing written to disk")
        return InlineSheetStore()
    return LocalSheetStore(config.sheets_dir)

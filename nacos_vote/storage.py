# nacos_vote/storage.py
# Per-browser key-value storage: what the browser would keep in localStorage
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from nacos_vote.errors import StorageError

logger = logging.getLogger(__name__)


class BrowserStore(ABC):
    """Values are JSON-serialisable; keys are scoped to one browser id."""

    @abstractmethod
    def get(self, browser_id: str, key: str) -> Optional[Any]: ...

    @abstractmethod
    def set(self, browser_id: str, key: str, value: Any) -> None: ...

    @abstractmethod
    def delete(self, browser_id: str, key: str) -> None: ...

    @abstractmethod
    def clear(self, browser_id: str) -> None: ...


class MemoryBrowserStore(BrowserStore):
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def get(self, browser_id, key):
        return self._data.get(browser_id, {}).get(key)

    def set(self, browser_id, key, value):
        # round-trip through JSON so callers never share mutable state with the store
        self._data.setdefault(browser_id, {})[key] = json.loads(json.dumps(value))

    def delete(self, browser_id, key):
        self._data.get(browser_id, {}).pop(key, None)

    def clear(self, browser_id):
        self._data.pop(browser_id, None)


def load_or_create_key(key_file: str) -> bytes:
    if os.path.dirname(key_file):
        os.makedirs(os.path.dirname(key_file), exist_ok=True)
    if not os.path.exists(key_file):
        fernet_key = Fernet.generate_key()
        with open(key_file, "wb") as kf:
            kf.write(fernet_key)
        return fernet_key
    with open(key_file, "rb") as kf:
        return kf.read()


class JsonFileBrowserStore(BrowserStore):
    """Single JSON file, each browser's record encrypted with Fernet (it holds session tokens)."""

    def __init__(self, path: str, key: bytes):
        self.path = path
        self.fernet = Fernet(key)
        self._lock = threading.Lock()
        if os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)
        if not os.path.exists(path):
            self._write_db({"browsers": {}})

    def _read_db(self) -> Dict[str, Any]:
        """
        Read the storage file safely.
        If file is empty or corrupted, auto-reset to {"browsers": {}}.
        """
        try:
            with open(self.path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            logger.warning("Browser storage at %s unreadable, resetting", self.path)
            reset_data = {"browsers": {}}
            self._write_db(reset_data)
            return reset_data

    def _write_db(self, data: Dict[str, Any]):
        try:
            with open(self.path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error("Failed to write browser storage %s: %s", self.path, e)
            raise StorageError()

    def _load_record(self, db: Dict[str, Any], browser_id: str) -> Dict[str, Any]:
        token = db["browsers"].get(browser_id)
        if not token:
            return {}
        try:
            return json.loads(self.fernet.decrypt(token.encode("utf-8")))
        except InvalidToken:
            # written under another key; treat as a fresh browser
            logger.warning("Discarding undecryptable storage record for browser %s", browser_id)
            return {}

    def _store_record(self, db: Dict[str, Any], browser_id: str, record: Dict[str, Any]):
        if record:
            db["browsers"][browser_id] = self.fernet.encrypt(json.dumps(record).encode("utf-8")).decode("utf-8")
        else:
            db["browsers"].pop(browser_id, None)
        self._write_db(db)

    def get(self, browser_id, key):
        with self._lock:
            return self._load_record(self._read_db(), browser_id).get(key)

    def set(self, browser_id, key, value):
        with self._lock:
            db = self._read_db()
            record = self._load_record(db, browser_id)
            record[key] = value
            self._store_record(db, browser_id, record)

    def delete(self, browser_id, key):
        with self._lock:
            db = self._read_db()
            record = self._load_record(db, browser_id)
            if key in record:
                del record[key]
                self._store_record(db, browser_id, record)

    def clear(self, browser_id):
        with self._lock:
            db = self._read_db()
            if browser_id in db["browsers"]:
                self._store_record(db, browser_id, {})


class LocalStorage:
    """One browser's view of a BrowserStore, mirroring window.localStorage."""

    def __init__(self, store: BrowserStore, browser_id: str):
        self.store = store
        self.browser_id = browser_id

    def get_item(self, key: str) -> Optional[Any]:
        return self.store.get(self.browser_id, key)

    def _update(self, key: Optional[str], operation, *args) -> None:
        try:
            operation(self.browser_id, *args)
        except StorageError:
            raise
        except Exception as e:
            logger.error("Storage update of %r failed: %s", key or "*", e)
            raise StorageError()

    def set_item(self, key: str, value: Any) -> None:
        self._update(key, self.store.set, key, value)

    def remove_item(self, key: str) -> None:
        self._update(key, self.store.delete, key)

    def clear(self) -> None:
        self._update(None, self.store.clear)

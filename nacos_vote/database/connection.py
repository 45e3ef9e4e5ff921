import logging

from nacos_vote import config
from nacos_vote.storage import BrowserStore, JsonFileBrowserStore, MemoryBrowserStore, load_or_create_key

logger = logging.getLogger(__name__)

_store: BrowserStore = None


def create_store(backend: str = None) -> BrowserStore:
    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "memory":
        return MemoryBrowserStore()
    if backend == "file":
        return JsonFileBrowserStore(config.STORAGE_PATH, load_or_create_key(config.STORAGE_KEY_FILE))
    if backend == "mongo":
        # pymongo only needed for this backend
        from nacos_vote.storage_mongo import MongoBrowserStore
        return MongoBrowserStore()
    raise ValueError(f"❌ Unknown STORAGE_BACKEND '{backend}'. Use memory, file or mongo.")


def get_store() -> BrowserStore:
    global _store
    if _store is None:
        _store = create_store()
        logger.info("Browser storage backend: %s", type(_store).__name__)
    return _store

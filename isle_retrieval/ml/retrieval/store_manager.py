"""
Vector Store Manager
Process-scoped handle that loads the embedding store lazily, exactly once.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional

from ...config import Settings, get_settings
from ...errors import LoadError
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


class VectorStoreManager:
    """
    Lazily loads and holds the VectorStore.

    - The first caller starts the load on a background thread
    - Concurrent callers (threads or tasks on any loop) await the same load
    - A caller that is cancelled while waiting does not cancel the load
    - A failed load makes the store unavailable until ``retry_interval`` elapses
    """

    def __init__(
        self,
        loader: Optional[Callable[[], VectorStore]] = None,
        settings: Optional[Settings] = None,
        retry_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize store manager.

        Args:
            loader: Callable returning a VectorStore (default: read the configured files)
            settings: Engine settings
            retry_interval: Seconds to wait before retrying a failed load
            clock: Monotonic clock (injectable for tests)
        """
        if loader is None or retry_interval is None:
            settings = settings or get_settings()
        self._loader = loader or (
            lambda: VectorStore.from_files(
                settings.embedding_index_path, settings.embedding_vectors_path
            )
        )
        self.retry_interval = (
            settings.store_retry_interval if retry_interval is None else retry_interval
        )
        self._clock = clock

        self._lock = threading.Lock()
        self._store: Optional[VectorStore] = None
        self._pending: Optional[Future] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        self.load_attempts = 0
        self.last_error: Optional[LoadError] = None
        self._failed_at: Optional[float] = None
        self._loaded_at: Optional[datetime] = None

    @classmethod
    def from_store(cls, store: VectorStore) -> "VectorStoreManager":
        """Manager wrapping an already-loaded store."""
        manager = cls(loader=lambda: store, retry_interval=0.0)
        manager._store = store
        manager._loaded_at = datetime.now(timezone.utc)
        return manager

    @property
    def is_loaded(self) -> bool:
        return self._store is not None

    def _start_load(self) -> Optional[Future]:
        """Return the in-flight load, starting one if allowed; None if nothing to wait for."""
        with self._lock:
            if self._store is not None:
                return None
            if self._pending is not None:
                return self._pending
            if (
                self._failed_at is not None
                and self._clock() - self._failed_at < self.retry_interval
            ):
                return None

            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="vector-store-load"
                )
            self.load_attempts += 1
            self._pending = self._executor.submit(self._load)
            return self._pending

    def _mark_failed(self, error: LoadError) -> None:
        with self._lock:
            self.last_error = error
            self._failed_at = self._clock()
            self._pending = None

    def _load(self) -> Optional[VectorStore]:
        started = time.time()
        try:
            store = self._loader()
        except LoadError as e:
            logger.error(
                f"Vector store unavailable, searches will use keyword scoring: {e.message}",
                extra={"details": e.details},
            )
            self._mark_failed(e)
            return None
        except Exception as e:
            logger.exception(f"Unexpected error loading vector store, searches will use keyword scoring: {e}")
            error = LoadError(
                f"Unexpected error loading vector store: {e}",
                details={"error_type": type(e).__name__},
            )
            self._mark_failed(error)
            return None

        with self._lock:
            self._store = store
            self.last_error = None
            self._failed_at = None
            self._loaded_at = datetime.now(timezone.utc)
            self._pending = None

        logger.info(f"Vector store ready ({store.count} vectors) in {time.time() - started:.2f}s")
        return store

    async def get_store(self) -> Optional[VectorStore]:
        """
        Get the store, loading it on first use.

        Returns:
            The VectorStore, or None when it cannot be loaded
        """
        pending = self._start_load()
        if pending is None:
            return self._store
        return await asyncio.shield(asyncio.wrap_future(pending))

    def get_store_blocking(self) -> Optional[VectorStore]:
        """Synchronous variant of get_store for non-async callers."""
        pending = self._start_load()
        if pending is None:
            return self._store
        return pending.result()

    def get_stats(self) -> dict:
        """
        Get manager statistics.

        Returns:
            Dictionary with load state and store stats
        """
        with self._lock:
            store = self._store
            if store is not None:
                status = "loaded"
            elif self._pending is not None:
                status = "loading"
            elif self.last_error is not None:
                status = "unavailable"
            else:
                status = "not_loaded"

            stats = {
                "status": status,
                "load_attempts": self.load_attempts,
                "loaded_at": self._loaded_at.isoformat() if self._loaded_at else None,
                "last_error": self.last_error.message if self.last_error else None,
            }

        if store is not None:
            stats.update(store.get_stats())
        return stats

    def close(self) -> None:
        """Stop the loader thread. The loaded store stays available."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def reset(self) -> None:
        """Drop the store and any failure state (useful for testing)."""
        self.close()
        with self._lock:
            self._store = None
            self._pending = None
            self.last_error = None
            self._failed_at = None
            self._loaded_at = None
            self.load_attempts = 0

        logger.info("Vector store manager reset")


# Global instance accessor
_manager_instance: Optional[VectorStoreManager] = None
_manager_lock = threading.Lock()


def get_store_manager(settings: Optional[Settings] = None) -> VectorStoreManager:
    """Get global vector store manager instance."""
    global _manager_instance
    with _manager_lock:
        if _manager_instance is None:
            _manager_instance = VectorStoreManager(settings=settings)
        return _manager_instance


def reset_store_manager() -> None:
    """Tear down the global manager."""
    global _manager_instance
    with _manager_lock:
        manager, _manager_instance = _manager_instance, None
    if manager is not None:
        manager.reset()

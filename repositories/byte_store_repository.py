import threading
from typing import Dict, Optional, Protocol


class ByteStore(Protocol):
    """
    Optional persistence capability the engine may consult for remote
    sources. Any object with these two methods qualifies.
    """

    def get(self, url: str) -> Optional[bytes]: ...

    def put(self, url: str, data: bytes) -> None: ...


class InMemoryByteStore:
    """
    Process-local ByteStore. No TTL, no size bound.
    """

    def __init__(self) -> None:
        self._items: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[bytes]:
        with self._lock:
            return self._items.get(url)

    def put(self, url: str, data: bytes) -> None:
        with self._lock:
            self._items[url] = bytes(data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

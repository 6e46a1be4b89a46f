from __future__ import annotations

import logging

from aquasweeper.models import normalize_mac
from aquasweeper.storage import Database

logger = logging.getLogger(__name__)


class AddressCache:
    """Last known address per device identity, written through to disk.

    The in-memory map stays authoritative for the life of the process even
    when the backing file cannot be read or written.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._entries: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> dict[str, str]:
        return dict(self._entries)

    def load_all(self) -> None:
        try:
            stored = self._database.load_address_cache()
        except OSError as exc:
            logger.warning("Could not load address cache: %s", exc)
            return
        for identity, address in stored.items():
            try:
                self._entries[normalize_mac(identity)] = address
            except ValueError:
                logger.warning("Dropping cache entry with bad identity %r", identity)
        logger.debug("Loaded %d cached device address(es)", len(self._entries))

    def get(self, identity: str) -> str | None:
        return self._entries.get(normalize_mac(identity))

    def put(self, identity: str, address: str) -> None:
        identity = normalize_mac(identity)
        if self._entries.get(identity) == address:
            return
        self._entries[identity] = address
        logger.info("Cached address %s for %s", address, identity)
        self.persist()

    def forget(self, identity: str) -> None:
        if self._entries.pop(normalize_mac(identity), None) is not None:
            self.persist()

    def persist(self) -> None:
        try:
            self._database.save_address_cache(self._entries)
        except OSError as exc:
            logger.warning("Could not persist address cache: %s", exc)

import logging
from typing import Optional

from pytss.document import type_name
from pytss.exceptions import EntryNotFoundError, TypeMismatchError

AP_IMG4_TICKET = "APImg4Ticket"
AP_TICKET = "APTicket"
BB_TICKET = "BBTicket"
TICKET_KEYS = (AP_IMG4_TICKET, AP_TICKET, BB_TICKET)

logger = logging.getLogger(__name__)


class TSSResponse(dict):
    """
    Parsed TSS response.

    Lookups scan the top-level entries in document order, so ``get_blob_by_path`` is O(entries) per call.
    """

    @property
    def ap_img4_ticket(self) -> bytes:
        return self.get_ticket(AP_IMG4_TICKET)

    @property
    def ap_ticket(self) -> bytes:
        return self.get_ticket(AP_TICKET)

    @property
    def bb_ticket(self) -> bytes:
        return self.get_ticket(BB_TICKET)

    def get_ticket(self, key: str) -> bytes:
        ticket = self.get(key)
        if ticket is None:
            logger.error(f"Unable to find {key} entry in TSS response")
            raise EntryNotFoundError(key)
        if not isinstance(ticket, bytes):
            logger.error(f"Unable to get {key} data from TSS response")
            raise TypeMismatchError(key, "data", type_name(ticket), "TSS response")
        return ticket

    def _get_entry(self, entry: str) -> dict:
        node = self.get(entry)
        if node is None:
            logger.error(f"Unable to find {entry} entry in TSS response")
            raise EntryNotFoundError(entry)
        if not isinstance(node, dict):
            logger.error(f"TSS response entry {entry} is not a dict")
            raise TypeMismatchError(entry, "dict", type_name(node), "TSS response")
        return node

    def get_path_by_entry(self, entry: str) -> Optional[str]:
        """
        Get the firmware path the server assigned to a component.

        :return: ``None`` when the entry exists but carries no ``Path``
        :raises EntryNotFoundError: when the entry itself is absent
        """
        path = self._get_entry(entry).get("Path")
        if path is None:
            logger.debug(f"NOTE: Unable to find {entry} path in TSS entry")
            return None
        if not isinstance(path, str):
            raise TypeMismatchError(f"{entry}.Path", "string", type_name(path), "TSS response")
        return path

    def get_blob_by_entry(self, entry: str) -> bytes:
        blob = self._get_entry(entry).get("Blob")
        if blob is None:
            logger.error(f"Unable to find blob in {entry} entry")
            raise EntryNotFoundError(f"{entry}.Blob")
        if not isinstance(blob, bytes):
            logger.error(f"Unable to find blob in {entry} entry")
            raise TypeMismatchError(f"{entry}.Blob", "data", type_name(blob), "TSS response")
        return blob

    def get_blob_by_path(self, path: str) -> bytes:
        for key, entry in self.items():
            if not isinstance(entry, dict) or entry.get("Path") != path:
                continue

            blob = entry.get("Blob")
            if not isinstance(blob, bytes):
                logger.error(f"Unable to find TSS blob node in entry {key}")
                if blob is None:
                    raise EntryNotFoundError(f"{key}.Blob")
                raise TypeMismatchError(f"{key}.Blob", "data", type_name(blob), "TSS response")
            return blob

        logger.error(f"Unable to find TSS entry for path {path}")
        raise EntryNotFoundError(path)

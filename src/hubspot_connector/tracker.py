"""Cross-reference of natural keys to the HubSpot records synced for them."""

from __future__ import annotations

from typing import Dict, List, Literal

from hubspot_connector.model import DealHandle, ResourceHandle

ResourceKind = Literal["company", "contact", "deal", "product"]
RESOURCE_KINDS: tuple[ResourceKind, ...] = ("company", "contact", "deal", "product")


class CrossReferenceTracker:
    """Append-only mapping of natural key -> HubSpot id, one list per resource kind.

    Keys are customer numbers for companies, emails for contacts, sales order
    numbers for deals and SKUs for products. Lookups scan linearly.
    """

    def __init__(self) -> None:
        self._handles: Dict[ResourceKind, List[ResourceHandle]] = {
            kind: [] for kind in RESOURCE_KINDS
        }

    def add(self, kind: ResourceKind, handle: ResourceHandle) -> None:
        self._handles[kind].append(handle)

    def find(self, kind: ResourceKind, key: object) -> ResourceHandle | None:
        if key is None:
            return None
        wanted = f"{key}"
        return next((h for h in self._handles[kind] if h.key == wanted), None)

    def pre_existing_deals(self) -> set[str]:
        """Sales order numbers whose deal was found in HubSpot rather than created."""
        return {
            handle.key
            for handle in self._handles["deal"]
            if isinstance(handle, DealHandle) and handle.sync_type == "update"
        }


__all__ = ["CrossReferenceTracker", "RESOURCE_KINDS", "ResourceKind"]

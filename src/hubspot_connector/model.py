"""Domain models for the spreadsheet to HubSpot migration.

These dataclasses represent the values shared throughout the tool: row-level
data errors, categorised application errors, the handles of synced HubSpot
resources and the flat rows of the final error report.
"""

from __future__ import annotations  # Postponed evaluation of annotations (PEP 563)

from dataclasses import dataclass  # Dataclass utilities
from typing import Literal  # Constrained string types for clarity

DataType = Literal[
    "Customer", "Contact", "Order", "Product", "Line Item", "PO"
]  # Record types exported by Impress
AppErrorKind = Literal["Environment", "API", "Data Integrity", "Unknown"]
SyncType = Literal["create", "update"]  # How a deal ended up in HubSpot


@dataclass(frozen=True, slots=True)
class DataError:
    """A source row that could not be parsed into a typed record."""

    type: DataType  # Record type of the failed row
    row_identifier: str  # Best-effort identifier (e.g. customer number)
    row_number: int  # Approximate: blank rows are skipped upstream
    message: str

    def __str__(self) -> str:
        return f"{self.type} row {self.row_number} ({self.row_identifier}): {self.message}"


class AppError(Exception):
    """A categorised failure raised while talking to HubSpot or the environment."""

    def __init__(self, kind: AppErrorKind, message: str = "") -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def message(self) -> str:
        return str(self)


@dataclass(frozen=True, slots=True)
class ResourceHandle:
    """A HubSpot id paired with the natural key it was synced under."""

    hubspot_id: int
    key: str  # Customer number, email, sales order# or SKU


@dataclass(frozen=True, slots=True)
class DealHandle(ResourceHandle):
    """Resource handle for a deal, remembering whether it was created or updated."""

    sync_type: SyncType = "create"


@dataclass(frozen=True, slots=True)
class ErrorRow:
    """One line of the error report."""

    error_type: str  # "Data", "App (<kind>)" or "Other"
    message: str
    data_type: str | None = None
    row_identifier: str | None = None
    row_number: int | None = None


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Progress of the sync across every record type."""

    message: str
    current_item: int
    total_items: int


__all__ = [
    "AppError",
    "AppErrorKind",
    "DataError",
    "DataType",
    "DealHandle",
    "ErrorRow",
    "ProgressUpdate",
    "ResourceHandle",
    "SyncType",
]

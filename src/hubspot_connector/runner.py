"""Run a full Impress to HubSpot migration.

Record types are synced in dependency order (customers, contacts, orders,
products, line items) so every type can resolve its associations from the
types synced before it. A failing record is reported and skipped; only a
missing access token stops the run, and it does so before any record is read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, List, Sequence

import httpx

from hubspot_connector import hubspot_gateway, parser
from hubspot_connector.config import Settings
from hubspot_connector.enrich import enrich_line_item, enrich_order
from hubspot_connector.hubspot_gateway import HubSpotClient
from hubspot_connector.model import AppError, DataError, DataType, ProgressUpdate
from hubspot_connector.progress import quiet_progress
from hubspot_connector.report import ErrorCollector, gather_data_errors, write_error_report
from hubspot_connector.schema import Owner
from hubspot_connector.sync import (
    sync_contact_as_contact,
    sync_customer_as_company,
    sync_line_item_as_line_item,
    sync_order_as_deal,
    sync_product_as_product,
)
from hubspot_connector.tracker import CrossReferenceTracker, ResourceKind

logger = logging.getLogger(__name__)

ProgressSink = Callable[["str | ProgressUpdate"], None]


@dataclass
class Datasets:
    """Parsed (and enriched) records of every type, data errors kept in place."""

    customers: List[Any] = field(default_factory=list)
    contacts: List[Any] = field(default_factory=list)
    orders: List[Any] = field(default_factory=list)
    products: List[Any] = field(default_factory=list)
    line_items: List[Any] = field(default_factory=list)
    purchase_orders: List[Any] = field(default_factory=list)

    def synced(self) -> tuple[List[Any], ...]:
        """The datasets that are pushed to HubSpot, in sync order."""
        return (self.customers, self.contacts, self.orders, self.products, self.line_items)

    def total(self) -> int:
        return sum(len(dataset) for dataset in self.synced())


@dataclass
class RunSummary:
    report_path: Path
    error_count: int
    synced: dict[str, int] = field(default_factory=dict)
    skipped_line_items: int = 0


def _enrich(items: Iterable[Any], enrich_fn: Callable[[Any], Any]) -> List[Any]:
    enriched: List[Any] = []
    for item in items:
        match item:
            case DataError():
                enriched.append(item)
            case _:
                enriched.append(enrich_fn(item))
    return enriched


def _load(data_dir: Path, data_type: DataType, collector: ErrorCollector) -> List[Any]:
    try:
        return parser.load_records(data_dir, data_type)
    except Exception as exc:  # Missing, corrupt or not a workbook at all
        collector.add(AppError("Unknown", f"Could not read {data_type} data: {exc}"))
        return []


def load_datasets(
    data_dir: Path, owners: Sequence[Owner], collector: ErrorCollector
) -> Datasets:
    """Parse every workbook, then enrich orders and line items.

    Enrichment only starts once the purchase orders and products it joins
    against have been parsed completely.
    """
    datasets = Datasets()
    datasets.customers = _load(data_dir, "Customer", collector)
    datasets.contacts = _load(data_dir, "Contact", collector)
    datasets.purchase_orders = _load(data_dir, "PO", collector)
    datasets.products = _load(data_dir, "Product", collector)
    orders = _load(data_dir, "Order", collector)
    line_items = _load(data_dir, "Line Item", collector)

    datasets.orders = _enrich(
        orders, lambda order: enrich_order(order, owners, datasets.purchase_orders)
    )
    datasets.line_items = _enrich(
        line_items, lambda item: enrich_line_item(item, datasets.products)
    )
    return datasets


def _sync_records(
    label: str,
    records: Sequence[Any],
    sync_one: Callable[[Any], Any],
    *,
    kind: ResourceKind | None,
    tracker: CrossReferenceTracker,
    collector: ErrorCollector,
    progress: ProgressSink,
    offset: int,
    total: int,
) -> tuple[int, int]:
    """Sync one record type; returns (synced, skipped) counts."""
    synced = skipped = 0
    for index, record in enumerate(records):
        progress(ProgressUpdate(f"Syncing {label}", offset + index + 1, total))
        match record:
            case DataError():
                continue  # Already reported by the parser
        try:
            handle = sync_one(record)
        except AppError as exc:
            collector.add(exc)
            continue
        except Exception as exc:
            collector.add(AppError("Unknown", f"Unexpected error syncing {label}: {exc}"))
            continue

        if handle is None:
            skipped += 1
            continue
        if kind is not None:
            tracker.add(kind, handle)
        synced += 1

    logger.info("Synced %d %s (%d skipped)", synced, label, skipped)
    return synced, skipped


def sync_datasets(
    client: HubSpotClient,
    datasets: Datasets,
    collector: ErrorCollector,
    progress: ProgressSink = quiet_progress,
) -> tuple[CrossReferenceTracker, RunSummary]:
    tracker = CrossReferenceTracker()
    summary = RunSummary(report_path=Path(), error_count=0)
    total = datasets.total()
    offset = 0

    def run_step(label, records, sync_one, kind):
        nonlocal offset
        synced, skipped = _sync_records(
            label,
            records,
            sync_one,
            kind=kind,
            tracker=tracker,
            collector=collector,
            progress=progress,
            offset=offset,
            total=total,
        )
        offset += len(records)
        summary.synced[label] = synced
        return skipped

    run_step(
        "customers",
        datasets.customers,
        lambda customer: sync_customer_as_company(client, customer),
        "company",
    )
    run_step(
        "contacts",
        datasets.contacts,
        lambda contact: sync_contact_as_contact(client, contact, tracker),
        "contact",
    )
    run_step(
        "orders",
        datasets.orders,
        lambda order: sync_order_as_deal(client, order, tracker),
        "deal",
    )
    run_step(
        "products",
        datasets.products,
        lambda product: sync_product_as_product(client, product),
        "product",
    )
    pre_existing = tracker.pre_existing_deals()
    summary.skipped_line_items = run_step(
        "line items",
        datasets.line_items,
        lambda item: sync_line_item_as_line_item(client, item, tracker, pre_existing),
        None,
    )
    return tracker, summary


def run_sync(
    settings: Settings,
    *,
    progress: ProgressSink = quiet_progress,
    transport: httpx.BaseTransport | None = None,
) -> RunSummary:
    """Migrate every workbook in ``settings.data_dir`` and write the error report."""

    token = settings.require_token()  # Fatal before any record is touched
    collector = ErrorCollector()
    summary = RunSummary(report_path=Path(settings.report_path), error_count=0)

    try:
        with hubspot_gateway.hubspot_session(
            settings.base_url, token, timeout=settings.timeout, transport=transport
        ) as client:
            progress("Fetching HubSpot owners...")
            owners = hubspot_gateway.fetch_owners(client)

            progress("Reading spreadsheets...")
            datasets = load_datasets(Path(settings.data_dir), owners, collector)
            collector.extend(
                gather_data_errors(*datasets.synced(), datasets.purchase_orders)
            )

            _, step_summary = sync_datasets(client, datasets, collector, progress)
            summary.synced = step_summary.synced
            summary.skipped_line_items = step_summary.skipped_line_items
    finally:
        summary.report_path = write_error_report(collector.rows(), summary.report_path)
        summary.error_count = len(collector)

    progress(f"Sync complete with {summary.error_count} errors.")
    return summary


__all__ = ["Datasets", "RunSummary", "load_datasets", "run_sync", "sync_datasets"]

"""Derive computed fields on parsed orders and line items.

Enrichment never mutates a record and never raises: it returns a copy with the
derived fields filled in, leaving a field unset whenever its lookup finds
nothing. It must only run once the sibling datasets (owners, purchase orders,
products) have been parsed in full.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from hubspot_connector.model import DataError
from hubspot_connector.schema import LineItem, Order, Owner, Product, PurchaseOrder, product_key

DEFAULT_PIPELINE = "default"
STAGE_WON = "closedwon"
STAGE_LOST = "closedlost"
STAGE_CONTRACT_SENT = "contractsent"

_WORD = re.compile(r"\S+")


def title_case(text: str) -> str:
    """Uppercase the first character of every word and lowercase the rest."""
    return _WORD.sub(lambda match: match[0][:1].upper() + match[0][1:].lower(), text)


def deal_stage(shorted: bool, invoice_date: object) -> str:
    if shorted:
        return STAGE_LOST
    if invoice_date is None:
        return STAGE_CONTRACT_SENT
    return STAGE_WON


def find_owner(agent_name: str | None, owners: Iterable[Owner]) -> Owner | None:
    # HubSpot cannot search owners by name, so match against the full list
    if not agent_name:
        return None
    wanted = agent_name.lower()
    return next((owner for owner in owners if owner.full_name.lower() == wanted), None)


def find_po_number(
    sales_order_number: str, purchase_orders: Iterable[PurchaseOrder | DataError]
) -> str | None:
    for item in purchase_orders:
        match item:
            case DataError():
                continue
            case PurchaseOrder() if item.sales_order_number == sales_order_number:
                return item.po_number
    return None


def enrich_order(
    order: Order,
    owners: Sequence[Owner],
    purchase_orders: Sequence[PurchaseOrder | DataError],
) -> Order:
    """Return a copy of ``order`` with pipeline, stage, owner and PO# filled in."""
    invoice_date = order.entered_date
    owner = find_owner(order.agent_name, owners)
    return order.model_copy(
        update={
            "invoice_date": invoice_date,
            "pipeline": DEFAULT_PIPELINE,
            "deal_stage": deal_stage(order.shorted, invoice_date),
            "hubspot_owner_id": owner.id if owner else None,
            "po_number": find_po_number(order.sales_order_number, purchase_orders),
            "sales_order_type": (
                title_case(order.sales_order_type) if order.sales_order_type else None
            ),
        }
    )


def enrich_line_item(
    line_item: LineItem, products: Sequence[Product | DataError]
) -> LineItem:
    """Return a copy of ``line_item`` with its SKU resolved and product name attached."""
    sku = line_item.item_number or line_item.sku_number
    update: dict[str, object] = {"sku": sku}
    for item in products:
        match item:
            case Product() if sku is not None and product_key(item) == sku:
                update["name"] = item.name
                break
    return line_item.model_copy(update=update)


__all__ = [
    "deal_stage",
    "enrich_line_item",
    "enrich_order",
    "find_owner",
    "title_case",
]

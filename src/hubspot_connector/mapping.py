"""Map Impress records onto HubSpot property dictionaries.

Keys are the exact internal property names expected by the HubSpot CRM API;
unset values are left out of the payload entirely.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any, Dict

from hubspot_connector.schema import Contact, Customer, LineItem, Order, Product, product_key

PLACEHOLDER_EMAIL_PREFIX = "UNKNOWN-EMAIL@placeholder"
# HubSpot limits the length of the domain part of an email
PLACEHOLDER_HASH_LENGTH = 44


def _properties(values: Dict[str, Any]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    for name, value in values.items():
        if value is None:
            continue
        properties[name] = value.isoformat() if isinstance(value, datetime) else value
    return properties


def hash_record(record: Contact) -> str:
    """Return the SHA-256 hex digest of the record's JSON form."""
    payload = json.dumps(
        record.model_dump(mode="json", by_alias=True, exclude_none=True),
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def contact_email(contact: Contact) -> str:
    """Return the email a contact is identified by in HubSpot.

    HubSpot treats email as unique, so contacts without one get a placeholder
    derived from the rest of their data. Editing any other field of such a
    contact therefore yields a new placeholder and a new HubSpot contact.
    """
    if contact.email is not None:
        return contact.email
    digest = hash_record(contact)[:PLACEHOLDER_HASH_LENGTH]
    return f"{PLACEHOLDER_EMAIL_PREFIX}{digest}.com"


def map_customer_to_company(customer: Customer) -> Dict[str, Any]:
    return _properties(
        {
            "address": customer.street_address,
            "address2": customer.address_line_2,
            "agent_code": customer.agent_number,
            "city": customer.city,
            "country": customer.country,
            "customer_number": customer.customer_number,
            "name": customer.customer_name,
            "phone": customer.phone,
            "state": customer.state,
            "zip": customer.zip_code,
        }
    )


def map_contact_to_contact(contact: Contact) -> Dict[str, Any]:
    return _properties(
        {
            "address": contact.address_line_2,
            "address_code": contact.address_code,
            "city": contact.city,
            "country": contact.country,
            "email": contact_email(contact),
            "firstname": contact.name,
            "phone": contact.phone,
            "state": contact.state,
            "zip": contact.zip_code,
            "fax": contact.fax,
        }
    )


def map_order_to_deal(order: Order) -> Dict[str, Any]:
    # Sales Order# goes into the default deal name, which HubSpot does not keep unique
    return _properties(
        {
            "dealname": order.sales_order_number,
            "pipeline": order.pipeline,
            "dealstage": order.deal_stage,
            "closedate": order.invoice_date,
            "amount": order.order_total,
            "hubspot_owner_id": order.hubspot_owner_id,
            "sales_order_type": order.sales_order_type,
            "entered_date": order.entered_date,
            "request_date": order.request_date,
            "cancel_date": order.cancel_date,
            "customer_po_number": order.customer_po_number,
            "po_number": order.po_number,
            "purchaser": order.purchaser,
            "shipping_cost": order.shipping_cost,
            "tax_total": order.tax_total,
            "order_cost": order.order_cost,
            "commission_amount": order.commission_amount,
            "internal_comments": order.internal_comments,
            "comments": order.comments,
            "ship_via": order.ship_via,
            "garment_design": order.garment_design,
            "garment_design_description": order.garment_design_description,
            "garment_design_instructions": order.garment_design_instructions,
        }
    )


def map_product_to_product(product: Product) -> Dict[str, Any]:
    return _properties(
        {
            "hs_sku": product_key(product),
            "name": product.name,
            "hs_product_type": product.product_type,
            "price": product.unit_price,
        }
    )


def map_line_item_to_line_item(line_item: LineItem) -> Dict[str, Any]:
    return _properties(
        {
            "name": line_item.name or line_item.sku,
            "hs_sku": line_item.sku,
            "quantity": line_item.size_qty_ordered,
            "price": line_item.unit_price,
            "hs_cost_of_goods_sold": line_item.size_cost,
            "size": line_item.size,
        }
    )


__all__ = [
    "contact_email",
    "hash_record",
    "map_contact_to_contact",
    "map_customer_to_company",
    "map_line_item_to_line_item",
    "map_order_to_deal",
    "map_product_to_product",
]

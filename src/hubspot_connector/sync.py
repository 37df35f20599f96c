"""Create-or-update reconciliation of Impress records against HubSpot.

Each ``sync_*`` function handles one record: it decides whether the matching
HubSpot object already exists, creates or updates it, and returns the handle
that later record types use to build associations. Failures raise
:class:`~hubspot_connector.model.AppError`; nothing is retried.

Companies, contacts and products are created optimistically. When HubSpot
rejects the create because the natural key is already taken, the existing
object is looked up by that key and patched instead. The error HubSpot returns
does not reliably carry the existing id, and PATCH only accepts the internal
id, hence the search in between.

Deals are searched for first because their key (``dealname``) is not unique
in HubSpot, so a create would never conflict.

Line items have no key of their own. A deal that already existed before this
run may hold any number of identical line items, so the line items of
pre-existing deals are skipped rather than risk duplicating them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

import httpx

from hubspot_connector import hubspot_gateway as gateway
from hubspot_connector.hubspot_gateway import HubSpotClient, ObjectType
from hubspot_connector.mapping import (
    contact_email,
    map_contact_to_contact,
    map_customer_to_company,
    map_line_item_to_line_item,
    map_order_to_deal,
    map_product_to_product,
)
from hubspot_connector.model import AppError, DealHandle, ResourceHandle
from hubspot_connector.schema import Contact, Customer, LineItem, Order, Product, product_key
from hubspot_connector.tracker import CrossReferenceTracker

logger = logging.getLogger(__name__)


def _find_single(
    client: HubSpotClient,
    object_type: ObjectType,
    property_name: str,
    value: Any,
    label: str,
) -> int:
    """Return the id of the only object whose ``property_name`` equals ``value``."""
    response = gateway.search_objects(client, object_type, property_name, value)
    if not response.is_success:
        raise AppError("API", f"Failed to execute search for existing {label}!")
    try:
        found = gateway.parse_search(response)
    except ValueError as exc:
        raise AppError("API", f"Unreadable search result for existing {label}: {exc}") from exc
    if found.total != 1 or len(found.results) != 1:
        raise AppError(
            "API", f"Failed to find existing {label} (search returned {found.total} matches)!"
        )
    return found.results[0].id


def _create_or_update(
    client: HubSpotClient,
    object_type: ObjectType,
    properties: Dict[str, Any],
    *,
    search_property: str,
    key: Any,
    already_exists: Callable[[httpx.Response], bool],
    label: str,
    associations: List[Dict[str, Any]] | None = None,
) -> int:
    """Create the object, falling back to search-then-update when its key is taken."""
    created = gateway.create_object(client, object_type, properties, associations)
    if created.is_success:
        created_id = gateway.response_id(created)
        if created_id is None:
            raise AppError("API", f"HubSpot did not return an id for new {label}!")
        logger.debug("Created %s as %s %d", label, object_type, created_id)
        return created_id

    if not already_exists(created):
        # Some other failure, not a pre-existing record
        raise AppError(
            "API", f"Error {created.status_code} while trying to sync {label}!"
        )

    existing_id = _find_single(client, object_type, search_property, key, label)
    patched = gateway.update_object(client, object_type, existing_id, properties)
    if not patched.is_success:
        raise AppError(
            "API", f"Failed to patch existing {label} (status {patched.status_code})!"
        )
    updated_id = gateway.response_id(patched) or existing_id
    logger.debug("Updated %s as %s %d", label, object_type, updated_id)
    return updated_id


def sync_customer_as_company(client: HubSpotClient, customer: Customer) -> ResourceHandle:
    """Create or update the company whose ``customer_number`` matches ``customer``."""
    hubspot_id = _create_or_update(
        client,
        "companies",
        map_customer_to_company(customer),
        search_property="customer_number",
        key=customer.customer_number,
        already_exists=gateway.company_already_exists,
        label=f"customer number {customer.customer_number}",
    )
    return ResourceHandle(hubspot_id=hubspot_id, key=f"{customer.customer_number}")


def sync_contact_as_contact(
    client: HubSpotClient, contact: Contact, tracker: CrossReferenceTracker
) -> ResourceHandle:
    """Create or update ``contact`` by email, associated with its synced company."""
    company = tracker.find("company", contact.customer_number)
    if company is None:
        raise AppError(
            "Data Integrity",
            f"Contact {contact.name} references customer number "
            f"{contact.customer_number}, which was not found in the dataset!",
        )

    email = contact_email(contact)
    hubspot_id = _create_or_update(
        client,
        "contacts",
        map_contact_to_contact(contact),
        search_property="email",
        key=email,
        already_exists=gateway.contact_already_exists,
        label=(
            f"contact (name {contact.name}, email {contact.email}, phone {contact.phone})"
        ),
        associations=[gateway.association(company.hubspot_id, gateway.CONTACT_TO_COMPANY)],
    )
    return ResourceHandle(hubspot_id=hubspot_id, key=email)


def sync_order_as_deal(
    client: HubSpotClient, order: Order, tracker: CrossReferenceTracker
) -> DealHandle:
    """Update the deal named after the sales order#, or create it with its associations."""
    number = order.sales_order_number
    company = tracker.find("company", order.customer_number)
    if company is None:
        raise AppError(
            "Data Integrity",
            f"Order {number} references a company that was not found in the dataset.",
        )
    contact = tracker.find("contact", order.buyer_email)
    if contact is None:
        raise AppError(
            "Data Integrity",
            f"Order {number} references a contact that was not found in the dataset.",
        )

    properties = map_order_to_deal(order)
    response = gateway.search_objects(client, "deals", "dealname", number)
    if not response.is_success:
        raise AppError("API", f"Failed to execute search for deal with sales order# {number}")
    try:
        found = gateway.parse_search(response)
    except ValueError as exc:
        raise AppError("API", f"Unreadable deal search for sales order# {number}: {exc}") from exc

    if found.results:
        if len(found.results) > 1:
            logger.warning(
                "%d deals share sales order# %s; updating the first",
                len(found.results),
                number,
            )
        existing_id = found.results[0].id
        patched = gateway.update_object(client, "deals", existing_id, properties)
        if not patched.is_success:
            raise AppError("API", f"Failed to update existing deal with sales order# {number}")
        return DealHandle(
            hubspot_id=gateway.response_id(patched) or existing_id,
            key=number,
            sync_type="update",
        )

    created = gateway.create_object(
        client,
        "deals",
        properties,
        [
            gateway.association(company.hubspot_id, gateway.DEAL_TO_COMPANY),
            gateway.association(contact.hubspot_id, gateway.DEAL_TO_CONTACT),
        ],
    )
    created_id = gateway.response_id(created) if created.is_success else None
    if created_id is None:
        raise AppError("API", f"Failed to create deal with sales order# {number}")
    return DealHandle(hubspot_id=created_id, key=number, sync_type="create")


def sync_product_as_product(client: HubSpotClient, product: Product) -> ResourceHandle:
    """Create or update the product whose ``hs_sku`` matches :func:`product_key`."""
    sku = product_key(product)
    hubspot_id = _create_or_update(
        client,
        "products",
        map_product_to_product(product),
        search_property="hs_sku",
        key=sku,
        already_exists=gateway.product_already_exists,
        label=f"product {sku}",
    )
    return ResourceHandle(hubspot_id=hubspot_id, key=sku)


def sync_line_item_as_line_item(
    client: HubSpotClient,
    line_item: LineItem,
    tracker: CrossReferenceTracker,
    pre_existing_deals: set[str] | None = None,
) -> ResourceHandle | None:
    """Create a line item on its deal; returns ``None`` when the deal pre-dates this run."""
    number = line_item.sales_order_number
    if pre_existing_deals is None:
        pre_existing_deals = tracker.pre_existing_deals()
    if number in pre_existing_deals:
        logger.debug("Skipping line item %s/%s on pre-existing deal", number, line_item.sku)
        return None

    deal = tracker.find("deal", number)
    if deal is None:
        raise AppError(
            "Data Integrity",
            f"Line item for deal {number} references a deal that was not found in the dataset.",
        )
    product = tracker.find("product", line_item.sku)
    if product is None:
        raise AppError(
            "Data Integrity",
            f"Line item for deal {number} referenced product {line_item.sku}, "
            "which was not found in the dataset.",
        )

    properties = map_line_item_to_line_item(line_item)
    properties["hs_product_id"] = product.hubspot_id
    created = gateway.create_object(
        client,
        "line_items",
        properties,
        [gateway.association(deal.hubspot_id, gateway.LINE_ITEM_TO_DEAL)],
    )
    created_id = gateway.response_id(created) if created.is_success else None
    if created_id is None:
        raise AppError(
            "API",
            f"Error {created.status_code} while creating line item {line_item.sku} "
            f"for deal {number}",
        )
    return ResourceHandle(hubspot_id=created_id, key=f"{number}/{line_item.sku}")


__all__ = [
    "sync_contact_as_contact",
    "sync_customer_as_company",
    "sync_line_item_as_line_item",
    "sync_order_as_deal",
    "sync_product_as_product",
]

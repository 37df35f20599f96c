"""HubSpot CRM gateway helpers.

This module talks to the HubSpot CRM v3 REST API over ``httpx``. It exposes a
small client context object holding the base URL, the access token and the
HTTP client, plus one function per API operation the sync needs: create,
update by id, search by an exact property value and list owners. Every
operation returns the raw :class:`httpx.Response`; deciding what a status
means is left to the caller, except for the "already exists" predicates below,
which are the only place that interprets HubSpot error bodies.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hubspot_connector.schema import Owner, OwnerResults

logger = logging.getLogger(__name__)

ObjectType = Literal["companies", "contacts", "deals", "products", "line_items"]

OBJECTS_PATH = "/crm/v3/objects"
OWNERS_PATH = "/crm/v3/owners/"
OWNERS_PAGE_LIMIT = 500  # HubSpot hard limit per request

# HUBSPOT_DEFINED association type ids
CONTACT_TO_COMPANY = 279
DEAL_TO_COMPANY = 341
DEAL_TO_CONTACT = 3
LINE_ITEM_TO_DEAL = 20

ALREADY_HAS_VALUE = "already has that value"


@dataclass
class HubSpotClient:
    """Everything needed to issue a HubSpot request."""

    base_url: str
    token: str
    http: httpx.Client

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = self.http.request(method, self.url(path), **kwargs)
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response


@contextmanager
def hubspot_session(
    base_url: str,
    token: str,
    *,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> Iterator[HubSpotClient]:
    """Open an authenticated HTTP client and close it when the block exits."""
    http = httpx.Client(
        timeout=timeout,
        headers={"Authorization": f"Bearer {token}"},
        transport=transport,
    )
    try:
        yield HubSpotClient(base_url=base_url, token=token, http=http)
    finally:
        http.close()


def association(to_id: int, type_id: int) -> Dict[str, Any]:
    return {
        "to": {"id": to_id},
        "types": [
            {"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": type_id}
        ],
    }


def create_object(
    client: HubSpotClient,
    object_type: ObjectType,
    properties: Dict[str, Any],
    associations: List[Dict[str, Any]] | None = None,
) -> httpx.Response:
    body: Dict[str, Any] = {"properties": properties}
    if associations:
        body["associations"] = associations
    return client.request("POST", f"{OBJECTS_PATH}/{object_type}", json=body)


def update_object(
    client: HubSpotClient,
    object_type: ObjectType,
    object_id: int,
    properties: Dict[str, Any],
) -> httpx.Response:
    return client.request(
        "PATCH", f"{OBJECTS_PATH}/{object_type}/{object_id}", json={"properties": properties}
    )


def search_objects(
    client: HubSpotClient,
    object_type: ObjectType,
    property_name: str,
    value: Any,
) -> httpx.Response:
    body = {
        "filters": [
            {"propertyName": property_name, "operator": "EQ", "value": f"{value}"}
        ]
    }
    return client.request("POST", f"{OBJECTS_PATH}/{object_type}/search", json=body)


class ObjectRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class SearchResults(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total: int
    results: List[ObjectRef] = Field(default_factory=list)


def parse_search(response: httpx.Response) -> SearchResults:
    """Parse a search response; raises ``ValueError`` if the body is malformed."""
    try:
        return SearchResults.model_validate(response.json())
    except ValidationError as exc:
        raise ValueError(f"Malformed search response: {exc}") from exc


def response_id(response: httpx.Response) -> int | None:
    """Return the ``id`` of the object in a create/update response, if present."""
    try:
        return int(response.json()["id"])
    except (ValueError, KeyError, TypeError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        message = response.json().get("message")
    except (ValueError, AttributeError):
        return ""
    return message if isinstance(message, str) else ""


def _unique_value_taken(response: httpx.Response, property_name: str) -> bool:
    # HubSpot answers 400 for this conflict, so only the wording tells it apart
    # from a bad request. A change in that wording breaks the check.
    message = _error_message(response)
    return f"propertyName={property_name}" in message and ALREADY_HAS_VALUE in message


def company_already_exists(response: httpx.Response) -> bool:
    return _unique_value_taken(response, "customer_number")


def product_already_exists(response: httpx.Response) -> bool:
    return _unique_value_taken(response, "hs_sku")


def contact_already_exists(response: httpx.Response) -> bool:
    return response.status_code == httpx.codes.CONFLICT


def fetch_owners(client: HubSpotClient) -> List[Owner]:
    """Return every HubSpot owner, or an empty list if they cannot be read."""
    try:
        response = client.request(
            "GET", OWNERS_PATH, params={"limit": OWNERS_PAGE_LIMIT}
        )
    except httpx.HTTPError as exc:
        logger.warning("Could not reach HubSpot to list owners: %s", exc)
        return []
    if not response.is_success:
        logger.warning("Listing owners failed with status %s", response.status_code)
        return []
    try:
        return OwnerResults.model_validate(response.json()).results
    except (ValueError, ValidationError) as exc:
        logger.warning("Unexpected owners payload: %s", exc)
        return []


__all__ = [
    "HubSpotClient",
    "association",
    "company_already_exists",
    "contact_already_exists",
    "create_object",
    "fetch_owners",
    "hubspot_session",
    "parse_search",
    "product_already_exists",
    "response_id",
    "search_objects",
    "update_object",
]

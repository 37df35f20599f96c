"""Shared fixtures: an in-memory HubSpot served through ``httpx.MockTransport``."""

import json
from collections import defaultdict
from pathlib import Path

import httpx
import pytest
from openpyxl import Workbook

from hubspot_connector.hubspot_gateway import hubspot_session

UNIQUE_MESSAGE = (
    "Property values were not valid: [{{\"isValid\":false,\"message\":"
    "\"{value} already has that value.\",\"error\":\"INVALID_OPTION\","
    "\"name\":\"{prop}\"}}] propertyName={prop}"
)


class FakeHubSpot:
    """Minimal stand-in for the HubSpot CRM v3 objects API."""

    def __init__(self, owners=None):
        self.objects = defaultdict(dict)  # object type -> {id: record}
        self.requests = []
        self.owners = owners or []
        self.owners_status = 200
        self._next_id = 1000

    # helpers ------------------------------------------------------------
    def seed(self, object_type, properties, associations=None):
        self._next_id += 1
        self.objects[object_type][self._next_id] = {
            "properties": dict(properties),
            "associations": associations or [],
        }
        return self._next_id

    def count(self, object_type):
        return len(self.objects[object_type])

    def find(self, object_type, prop, value):
        return [
            object_id
            for object_id, record in self.objects[object_type].items()
            if f"{record['properties'].get(prop)}" == f"{value}"
        ]

    def calls(self, method=None):
        return [r for r in self.requests if method is None or r.method == method]

    # transport ----------------------------------------------------------
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")
        body = json.loads(request.content) if request.content else {}

        if parts[:3] == ["crm", "v3", "owners"]:
            return httpx.Response(self.owners_status, json={"results": self.owners})

        object_type = parts[3]
        if request.method == "POST" and len(parts) == 5 and parts[4] == "search":
            flt = body["filters"][0]
            ids = self.find(object_type, flt["propertyName"], flt["value"])
            return httpx.Response(
                200,
                json={"total": len(ids), "results": [{"id": str(i)} for i in ids]},
            )
        if request.method == "POST":
            return self._create(object_type, body)
        if request.method == "PATCH":
            object_id = int(parts[4])
            if object_id not in self.objects[object_type]:
                return httpx.Response(404, json={"message": "Object not found"})
            self.objects[object_type][object_id]["properties"].update(body["properties"])
            return httpx.Response(200, json={"id": str(object_id)})
        return httpx.Response(405, json={"message": "unsupported"})

    def _create(self, object_type, body):
        props = body["properties"]
        unique = {"companies": "customer_number", "products": "hs_sku"}
        if object_type in unique:
            prop = unique[object_type]
            if self.find(object_type, prop, props.get(prop)):
                message = UNIQUE_MESSAGE.format(value=props.get(prop), prop=prop)
                return httpx.Response(400, json={"status": "error", "message": message})
        if object_type == "contacts" and self.find("contacts", "email", props.get("email")):
            return httpx.Response(409, json={"message": "Contact already exists."})
        object_id = self.seed(object_type, props, body.get("associations"))
        return httpx.Response(201, json={"id": str(object_id), "properties": props})

    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_hubspot():
    return FakeHubSpot()


@pytest.fixture
def client(fake_hubspot):
    with hubspot_session(
        "https://api.hubapi.test", "test-token", transport=fake_hubspot.transport()
    ) as hubspot:
        yield hubspot


def scripted_client(responses):
    """Return a session context whose transport replays ``responses`` in order."""
    queue = list(responses)
    seen = []

    def handler(request):
        seen.append(request)
        status, payload = queue.pop(0)
        return httpx.Response(status, json=payload)

    session = hubspot_session(
        "https://api.hubapi.test", "test-token", transport=httpx.MockTransport(handler)
    )
    return session, seen


def write_workbook(path: Path, sheet_name: str, headers, rows) -> Path:
    """Create ``path`` with one worksheet holding ``headers`` and ``rows``."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    wb.save(path)
    return path

"""End-to-end tests for the migration run against an in-memory HubSpot."""

from pathlib import Path
from unittest.mock import patch

import pytest
from openpyxl import Workbook, load_workbook

from conftest import FakeHubSpot, write_workbook
from hubspot_connector.config import Settings
from hubspot_connector.model import AppError, ProgressUpdate, ResourceHandle
from hubspot_connector.products_cleanup import cleanup_products_sheet
from hubspot_connector.report import ErrorCollector
from hubspot_connector.runner import Datasets, load_datasets, run_sync, sync_datasets
from hubspot_connector.schema import Customer, Order

OWNERS = [{"id": "77", "firstName": "Dana", "lastName": "Scully", "email": "d@example.com"}]


def create_data_dir(root: Path) -> Path:
    """Create one workbook per record type, including a few broken rows."""
    data_dir = root / "data"
    data_dir.mkdir()
    write_workbook(
        data_dir / "customers.xlsx",
        "customers",
        ["Customer Number", "Customer Name", "City", "Zip Code"],
        [
            [101, "Acme Tees", "Portland", 97201],
            [102, "Bolt Apparel", "Salem", None],
            ["oops", "Broken Customer", None, None],
        ],
    )
    write_workbook(
        data_dir / "contacts.xlsx",
        "contacts",
        ["Customer Number", "Name", "Email", "Phone#"],
        [
            [101, "Pat Buyer", "pat@acme.com", "555-0100"],
            [102, "No Email", None, "555-0199"],
            [999, "Orphan", "orphan@acme.com", None],
        ],
    )
    write_workbook(
        data_dir / "orders.xlsx",
        "orders",
        [
            "Customer Number",
            "Sales Order#",
            "Sales Order Type",
            "Entered Date",
            "Agent Name#1",
            "Buyer Email",
            "Order $Total",
            "Shorted",
        ],
        [
            [101, "SO-1", "SCREEN PRINT", 45000, "dana scully", "pat@acme.com", 250.0, "N"],
            [101, "SO-2", None, None, None, "pat@acme.com", 80.0, "Y"],
            [102, "SO-3", None, 45010, None, None, 10.0, None],
        ],
    )
    write_workbook(
        data_dir / "products.xlsx",
        "products",
        ["Name", "SKU", "Product Type", "Unit Price"],
        [["Basic Tee", "TS-100", "Inventory", 4.5], ["Hoodie", "HD-200", None, 20]],
    )
    write_workbook(
        data_dir / "line items.xlsx",
        "line items",
        ["Sales Order#", "SKU#", "Item#", "Size", "Size Qty Ordered", "Unit Price"],
        [
            ["SO-1", "TS-100", None, "L", 12, 4.5],
            ["SO-1", "XX-1", "HD-200", "M", 2, 20],
            ["SO-2", "TS-100", None, "S", 1, 4.5],
            ["SO-3", "TS-100", None, "S", 1, 4.5],
            ["SO-1", "NOPE-1", None, "S", "lots", 1],
        ],
    )
    write_workbook(
        data_dir / "po.xlsx", "po", ["Sales Order#", "PO#"], [["SO-1", "PO-9001"]]
    )
    return data_dir


def make_settings(tmp_path, data_dir, report_name="Errors.xlsx", token="token"):
    return Settings(
        _env_file=None,
        HUBSPOT_ACCESS_TOKEN=token,
        HUBSPOT_BASE_URL="https://api.hubapi.test",
        DATA_DIR=data_dir,
        REPORT_PATH=tmp_path / "output" / report_name,
    )


@pytest.fixture
def fake():
    return FakeHubSpot(owners=OWNERS)


def test_full_run_syncs_every_type_and_reports_errors(tmp_path, fake):
    settings = make_settings(tmp_path, create_data_dir(tmp_path))
    updates = []

    summary = run_sync(settings, progress=updates.append, transport=fake.transport())

    assert fake.count("companies") == 2
    assert fake.count("contacts") == 2  # orphan contact has no company
    assert fake.count("deals") == 2  # SO-3 has no buyer contact
    assert fake.count("products") == 2
    assert fake.count("line_items") == 3  # SO-1 x2, SO-2 x1

    deal = fake.objects["deals"][fake.find("deals", "dealname", "SO-1")[0]]["properties"]
    assert deal["dealstage"] == "closedwon"
    assert deal["hubspot_owner_id"] == "77"
    assert deal["po_number"] == "PO-9001"
    assert deal["sales_order_type"] == "Screen Print"
    lost = fake.objects["deals"][fake.find("deals", "dealname", "SO-2")[0]]["properties"]
    assert lost["dealstage"] == "closedlost"

    hoodie_item = [
        record["properties"]
        for record in fake.objects["line_items"].values()
        if record["properties"]["hs_sku"] == "HD-200"
    ]
    assert hoodie_item[0]["name"] == "Hoodie"

    # 1 bad customer row, 1 bad line item row, orphan contact, SO-3 contact,
    # SO-3 line item (deal never synced)
    assert summary.error_count == 5
    rows = list(load_workbook(summary.report_path)["Errors"].iter_rows(values_only=True))
    kinds = sorted(row[0] for row in rows[1:])
    assert kinds == ["App (Data Integrity)"] * 3 + ["Data"] * 2

    progress = [u for u in updates if isinstance(u, ProgressUpdate)]
    assert progress[-1].current_item == progress[-1].total_items == 3 + 3 + 3 + 2 + 5
    assert updates[-1].startswith("Sync complete")


def test_second_run_updates_instead_of_duplicating(tmp_path, fake):
    settings = make_settings(tmp_path, create_data_dir(tmp_path))
    run_sync(settings, progress=lambda update: None, transport=fake.transport())
    counts = {kind: fake.count(kind) for kind in ("companies", "contacts", "deals", "products")}
    line_items = fake.count("line_items")

    summary = run_sync(settings, progress=lambda update: None, transport=fake.transport())

    assert {kind: fake.count(kind) for kind in counts} == counts
    assert fake.count("line_items") == line_items  # deals now pre-exist
    assert summary.skipped_line_items == 3
    assert fake.calls("PATCH")


def test_missing_token_aborts_before_any_work(tmp_path, fake):
    settings = make_settings(tmp_path, create_data_dir(tmp_path), token=None)

    with pytest.raises(AppError) as info:
        run_sync(settings, progress=lambda update: None, transport=fake.transport())

    assert info.value.kind == "Environment"
    assert fake.requests == []
    assert not settings.report_path.exists()


def test_missing_workbook_is_reported_and_run_continues(tmp_path, fake):
    data_dir = create_data_dir(tmp_path)
    (data_dir / "po.xlsx").unlink()
    settings = make_settings(tmp_path, data_dir, report_name="errors.json")

    summary = run_sync(settings, progress=lambda update: None, transport=fake.transport())

    assert fake.count("deals") == 2
    assert summary.report_path.suffix == ".json"
    assert "Could not read PO data" in summary.report_path.read_text(encoding="utf-8")


def test_unexpected_sync_failure_is_wrapped_and_skipped():
    datasets = Datasets(
        customers=[
            Customer.model_validate({"Customer Number": 1, "Customer Name": "A"}),
            Customer.model_validate({"Customer Number": 2, "Customer Name": "B"}),
        ]
    )
    collector = ErrorCollector()
    calls = iter([RuntimeError("socket closed"), None])

    def flaky(client, customer):
        outcome = next(calls)
        if outcome is not None:
            raise outcome
        return ResourceHandle(hubspot_id=5, key=f"{customer.customer_number}")

    with patch("hubspot_connector.runner.sync_customer_as_company", side_effect=flaky):
        tracker, summary = sync_datasets(None, datasets, collector, lambda update: None)

    assert summary.synced["customers"] == 1
    assert tracker.find("company", 2).hubspot_id == 5
    [error] = collector.errors
    assert error.kind == "Unknown"
    assert "socket closed" in str(error)


def test_enrichment_waits_for_sibling_datasets(tmp_path):
    data_dir = create_data_dir(tmp_path)
    collector = ErrorCollector()

    datasets = load_datasets(data_dir, [], collector)

    order = next(o for o in datasets.orders if isinstance(o, Order))
    assert order.po_number == "PO-9001"
    assert order.hubspot_owner_id is None  # no owners supplied
    assert [getattr(item, "name", None) for item in datasets.line_items[:2]] == [
        "Basic Tee",
        "Hoodie",
    ]
    assert len(collector) == 0


def test_cli_exits_with_error_when_token_missing(monkeypatch, tmp_path, capsys):
    from hubspot_connector import cli

    monkeypatch.delenv("HUBSPOT_ACCESS_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)

    assert cli.main(["--data-dir", str(tmp_path)]) == 1
    assert "Environment error" in capsys.readouterr().err


def test_cli_runs_the_sync(monkeypatch, tmp_path, capsys):
    from hubspot_connector import cli

    data_dir = create_data_dir(tmp_path)
    report = tmp_path / "report.json"
    monkeypatch.setenv("HUBSPOT_ACCESS_TOKEN", "token")
    monkeypatch.chdir(tmp_path)
    fake = FakeHubSpot(owners=OWNERS)

    def fake_run(settings, progress):
        return run_sync(settings, progress=progress, transport=fake.transport())

    monkeypatch.setattr(cli, "run_sync", fake_run)

    assert cli.main(["--data-dir", str(data_dir), "--output", str(report)]) == 0
    assert report.exists()
    assert "Sync finished with 5 errors" in capsys.readouterr().out


def write_product_printout(path: Path, rows) -> Path:
    """Write products the way Impress prints them: code in A, description in B from row 5."""
    wb = Workbook()
    ws = wb.active
    ws.title = "products"
    ws["A1"] = "Impress Product Listing"
    for offset, (code, description) in enumerate(rows):
        ws.cell(row=5 + offset, column=1, value=code)
        ws.cell(row=5 + offset, column=2, value=description)
    wb.save(path)
    return path


def test_cleaned_products_resolve_line_items(tmp_path, fake):
    data_dir = create_data_dir(tmp_path)
    products = write_product_printout(
        data_dir / "products.xlsx", [("TS-100", "Basic Tee"), ("HD-200", "Hoodie")]
    )
    cleanup_products_sheet(products)
    settings = make_settings(tmp_path, data_dir)

    summary = run_sync(settings, progress=lambda update: None, transport=fake.transport())

    assert sorted(
        record["properties"]["hs_sku"] for record in fake.objects["products"].values()
    ) == ["<MIN-DS", "<MIN-EMB", "<MIN-PIP", "<MIN-SP", "HD-200", "TS-100"]
    names = sorted(
        record["properties"]["name"] for record in fake.objects["line_items"].values()
    )
    assert names == ["Basic Tee", "Basic Tee", "Hoodie"]
    assert summary.error_count == 5  # same rejects as the plain products sheet


def test_corrupt_workbook_is_reported_and_run_continues(tmp_path, fake):
    data_dir = create_data_dir(tmp_path)
    (data_dir / "customers.xlsx").write_bytes(b"not a zip")
    settings = make_settings(tmp_path, data_dir, report_name="errors.json")

    summary = run_sync(settings, progress=lambda update: None, transport=fake.transport())

    assert fake.count("companies") == 0
    assert fake.count("products") == 2
    assert "Could not read Customer data" in summary.report_path.read_text(encoding="utf-8")


def test_deals_go_out_without_owner_when_owners_are_unavailable(tmp_path, fake):
    fake.owners_status = 500
    settings = make_settings(tmp_path, create_data_dir(tmp_path))

    run_sync(settings, progress=lambda update: None, transport=fake.transport())

    deal = fake.objects["deals"][fake.find("deals", "dealname", "SO-1")[0]]["properties"]
    assert "hubspot_owner_id" not in deal
    assert deal["dealstage"] == "closedwon"


@pytest.mark.parametrize("contents", [None, b"not a zip"])
def test_cli_reports_failed_products_cleanup(monkeypatch, tmp_path, capsys, contents):
    from hubspot_connector import cli

    monkeypatch.setenv("HUBSPOT_ACCESS_TOKEN", "token")
    monkeypatch.chdir(tmp_path)
    if contents is not None:
        (tmp_path / "products.xlsx").write_bytes(contents)
    monkeypatch.setattr(cli, "run_sync", lambda *args, **kwargs: pytest.fail("sync ran"))

    assert cli.main(["--data-dir", str(tmp_path), "--cleanup-products"]) == 1
    assert "Products cleanup failed" in capsys.readouterr().err

"""Typed source records exported by Impress, validated with pydantic.

Field aliases are the exact column headers of the Impress export so a raw row
(header -> cell value) can be validated directly. Parsed records are frozen;
enrichment produces copies with :meth:`pydantic.BaseModel.model_copy`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field

EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)
LEAP_YEAR_BUG_SERIAL = 59  # Excel believes 1900-02-29 existed


def excel_serial_to_datetime(value: Any) -> Any:
    """Convert an Excel serial date (days since the 1900 epoch) to a UTC datetime.

    Serials above 59 are shifted by one day to step over the fictitious
    1900-02-29 that Excel inherited from Lotus 1-2-3.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Excel dates must be numeric serial values")
    serial = float(value)
    if serial > LEAP_YEAR_BUG_SERIAL:
        serial += 1
    return EXCEL_EPOCH + timedelta(days=serial)


def _to_str(value: Any) -> Any:
    # Numeric cells such as zip codes or order numbers arrive as int/float
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


ExcelDate = Annotated[datetime, BeforeValidator(excel_serial_to_datetime)]
CoercedStr = Annotated[str, BeforeValidator(_to_str)]


class SourceRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Customer(SourceRecord):
    customer_number: int = Field(alias="Customer Number")
    agent_number: int | None = Field(None, alias="Agent #1")
    customer_name: str = Field(alias="Customer Name")
    street_address: str | None = Field(None, alias="Street Address")
    address_line_2: str | None = Field(None, alias="Address Line 2")
    city: str | None = Field(None, alias="City")
    state: str | None = Field(None, alias="State")
    zip_code: CoercedStr | None = Field(None, alias="Zip Code")
    country: str | None = Field(None, alias="Country")
    phone: CoercedStr | None = Field(None, alias="Phone#")


class Contact(SourceRecord):
    customer_number: int = Field(alias="Customer Number")
    address_code: int | None = Field(None, alias="Address Code")
    name: str = Field(alias="Name")
    address_line_2: str | None = Field(None, alias="Address Line 2")
    city: str | None = Field(None, alias="City")
    state: str | None = Field(None, alias="State")
    zip_code: CoercedStr | None = Field(None, alias="Zip Code")
    country: str | None = Field(None, alias="Country")
    phone: CoercedStr | None = Field(None, alias="Phone#")
    fax: CoercedStr | None = Field(None, alias="Fax#")
    email: EmailStr | None = Field(None, alias="Email")


class Order(SourceRecord):
    customer_number: int = Field(alias="Customer Number")
    sales_order_type: str | None = Field(None, alias="Sales Order Type")
    sales_order_number: CoercedStr = Field(alias="Sales Order#")
    entered_date: ExcelDate | None = Field(None, alias="Entered Date")
    request_date: ExcelDate | None = Field(None, alias="Request Date")
    cancel_date: ExcelDate | None = Field(None, alias="Cancel Date")
    customer_po_number: CoercedStr | None = Field(None, alias="Customer PO#")
    agent_name: str | None = Field(None, alias="Agent Name#1")
    purchaser: str | None = Field(None, alias="Purchaser")
    buyer_email: EmailStr | None = Field(None, alias="Buyer Email")
    shipping_cost: float | None = Field(None, alias="Shipping $Cost")
    tax_total: float | None = Field(None, alias="Tax $Total")
    order_total: float | None = Field(None, alias="Order $Total")
    order_cost: float | None = Field(None, alias="Order $Cost")
    commission_amount: float | None = Field(None, alias="Commission Amount")
    shorted: bool = Field(False, alias="Shorted")
    invoice_date: ExcelDate | None = Field(None, alias="Invoice Date")
    internal_comments: str | None = Field(None, alias="Internal Comments")
    comments: str | None = Field(None, alias="Comments")
    ship_via: str | None = Field(None, alias="Ship Via")
    garment_design: str | None = Field(None, alias="Garment Design")
    garment_design_description: str | None = Field(
        None, alias="Garment Design Description"
    )
    garment_design_instructions: str | None = Field(
        None, alias="Garment Design Instructions"
    )
    # Filled in by enrichment
    pipeline: str | None = Field(None, alias="Pipeline")
    deal_stage: str | None = Field(None, alias="Deal Stage")
    hubspot_owner_id: str | None = Field(None, alias="HubSpot Owner ID")
    po_number: CoercedStr | None = Field(None, alias="PO#")


class LineItem(SourceRecord):
    sales_order_number: CoercedStr = Field(alias="Sales Order#")
    entered_date: ExcelDate | None = Field(None, alias="Entered Date")
    size: CoercedStr | None = Field(None, alias="Size")
    size_qty_ordered: float | None = Field(None, alias="Size Qty Ordered")
    size_cost: float | None = Field(None, alias="Size Cost")
    unit_price: float | None = Field(None, alias="Unit Price")
    sku_number: CoercedStr | None = Field(None, alias="SKU#")  # From Impress
    item_number: CoercedStr | None = Field(None, alias="Item#")  # From Impress
    # Filled in by enrichment: Item# if present, otherwise SKU#
    sku: CoercedStr | None = Field(None, alias="SKU")
    name: str | None = Field(None, alias="Name")


class Product(SourceRecord):
    """A product from the Impress export.

    The paginated Impress printout holds the code in its first column and the
    description in its second; :mod:`hubspot_connector.products_cleanup` writes
    them out as ``SKU`` and ``Name``. See :func:`product_key`.
    """

    name: CoercedStr = Field(alias="Name")
    sku: CoercedStr | None = Field(None, alias="SKU")
    product_type: str | None = Field(None, alias="Product Type")
    unit_price: float | None = Field(None, alias="Unit Price")


class PurchaseOrder(SourceRecord):
    sales_order_number: CoercedStr = Field(alias="Sales Order#")
    po_number: CoercedStr | None = Field(None, alias="PO#")


class Owner(BaseModel):
    """A HubSpot user that can own deals."""

    model_config = ConfigDict(extra="ignore")

    id: CoercedStr
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    email: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}"


class OwnerResults(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[Owner] = Field(default_factory=list)


def product_key(product: Product) -> str:
    """Return the value a product is identified by in HubSpot (``hs_sku``).

    This is the ``SKU`` column, or ``Name`` for rows that carry no SKU.
    """
    return product.sku or product.name


__all__ = [
    "Contact",
    "Customer",
    "LineItem",
    "Order",
    "Owner",
    "OwnerResults",
    "Product",
    "PurchaseOrder",
    "excel_serial_to_datetime",
    "product_key",
]

"""
Shared fixtures: a fully well-formed invoice and helpers to break it.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from timbra.config import get_settings
from timbra.domain.models import (
    CompanySnapshot,
    CustomerSnapshot,
    InvoiceItemSnapshot,
    InvoiceSnapshot,
    InvoiceValidationData,
    ProductSnapshot,
    SaleItemSnapshot,
)


def make_item(
    item_id: str = "item-1",
    quantity: str | None = "2",
    unit_price: str | None = "50.00",
    total_price: str | None = "100.00",
    description: str | None = "Consultoría fiscal",
    product: ProductSnapshot | None = None,
    with_product: bool = True,
) -> InvoiceItemSnapshot:
    if with_product and product is None:
        product = ProductSnapshot(
            name="Consultoría",
            sku="SKU-001",
            sat_key="60121100",
            sat_unit_key="E48",
            sale_unit="Servicio",
            iva=Decimal("0.16"),
        )
    return InvoiceItemSnapshot(
        id=item_id,
        quantity=Decimal(quantity) if quantity is not None else None,
        unit_price=Decimal(unit_price) if unit_price is not None else None,
        total_price=Decimal(total_price) if total_price is not None else None,
        sale_item=SaleItemSnapshot(description=description, product=product),
    )


@pytest.fixture
def valid_data() -> InvoiceValidationData:
    """Invoice that passes every rule without warnings."""
    return InvoiceValidationData(
        invoice=InvoiceSnapshot(
            id="inv-1",
            status="pending",
            payment_method="PUE",
            payment_form="03",
            cfdi_use="G03",
            subtotal=Decimal("200.00"),
            taxes=Decimal("32.00"),
            serie="A",
            folio="100",
        ),
        company=CompanySnapshot(
            id="company-1",
            rfc="EKU9003173C9",
            name="Escuela Kemper Urgate",
            regime="601",
            postal_code="26015",
            csd_cert="cert-base64",
            csd_key="key-base64",
            csd_password="12345678a",
        ),
        customer=CustomerSnapshot(
            id="customer-1",
            name="Universidad Robótica",
            email="compras@ure.mx",
            rfc="URE180429TM6",
            razon_social="UNIVERSIDAD ROBOTICA ESPAÑOLA",
            tax_regime="601",
            fiscal_address="Av. Reforma 100, Centro",
            fiscal_postal_code="86991",
            uso_cfdi="G03",
        ),
        items=[
            make_item("item-1", quantity="2", unit_price="50.00", total_price="100.00"),
            make_item("item-2", quantity="1", unit_price="100.00", total_price="100.00"),
        ],
    )


@pytest.fixture
def generic_data(valid_data) -> InvoiceValidationData:
    """Invoice to público en general: customer without fiscal data."""
    return replace(
        valid_data,
        customer=CustomerSnapshot(id="customer-2", name="Público en general"),
    )


def with_invoice(data: InvoiceValidationData, **changes) -> InvoiceValidationData:
    return replace(data, invoice=replace(data.invoice, **changes))


def with_company(data: InvoiceValidationData, **changes) -> InvoiceValidationData:
    return replace(data, company=replace(data.company, **changes))


def with_customer(data: InvoiceValidationData, **changes) -> InvoiceValidationData:
    return replace(data, customer=replace(data.customer, **changes))


@pytest.fixture
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ERP snapshot payload in its camelCase JSON shape; validates cleanly.
SNAPSHOT_PAYLOAD = {
    "invoice": {
        "id": "inv-1",
        "status": "pending",
        "paymentMethod": "PUE",
        "paymentForm": "03",
        "cfdiUse": "G03",
        "subtotal": "100.00",
        "taxes": "16.00",
    },
    "company": {
        "id": "company-1",
        "rfc": "EKU9003173C9",
        "name": "Escuela Kemper Urgate",
        "regime": "601",
        "postalCode": "26015",
        "csdCert": "cert",
        "csdKey": "key",
        "csdPassword": "secret",
    },
    "customer": {
        "id": "customer-1",
        "name": "Universidad Robótica",
        "rfc": "URE180429TM6",
        "razonSocial": "UNIVERSIDAD ROBOTICA ESPAÑOLA",
        "taxRegime": "601",
        "fiscalAddress": "Av. Reforma 100",
        "fiscalPostalCode": "86991",
        "usoCFDI": "G03",
    },
    "items": [
        {
            "id": "item-1",
            "quantity": 1,
            "unitPrice": "100.00",
            "totalPrice": "100.00",
            "saleItem": {
                "description": "Consultoría",
                "product": {
                    "name": "Consultoría",
                    "satKey": "60121100",
                    "satUnitKey": "E48",
                    "saleUnit": "Servicio",
                },
            },
        },
    ],
}

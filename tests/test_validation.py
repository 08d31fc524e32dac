"""
Unit tests for the pre-stamping invoice validator.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from conftest import make_item, with_company, with_customer, with_invoice
from timbra.domain.models import Severity, ValidationResult
from timbra.domain.validation import (
    DEFAULT_RULES,
    InvoiceValidator,
    TaxPolicy,
    calculate_subtotal,
    validate_invoice,
    validate_invoice_status,
)


def codes(findings):
    return [f.code for f in findings]


# =============================================================================
# Overall outcome
# =============================================================================

def test_well_formed_invoice_can_stamp(valid_data):
    result = InvoiceValidator().validate(valid_data)

    assert result.errors == []
    assert result.warnings == []
    assert result.is_valid
    assert result.can_stamp
    assert result.can_preview


def test_stamped_invoice_is_rejected(valid_data):
    result = validate_invoice(with_invoice(valid_data, status="stamped"))

    assert "INVALID_STATUS" in codes(result.errors)
    assert not result.can_stamp
    assert not result.is_valid
    assert result.can_preview


@pytest.mark.parametrize("status", ["stamped", "cancelled", "draft", ""])
def test_non_pending_status_always_blocks(valid_data, generic_data, status):
    for data in (valid_data, generic_data):
        result = validate_invoice(with_invoice(data, status=status))
        assert codes(result.errors)[0] == "INVALID_STATUS"
        assert not result.can_stamp


def test_status_message_includes_current_status(valid_data):
    findings = validate_invoice_status(with_invoice(valid_data, status="stamped"), TaxPolicy())
    assert "stamped" in findings[0].message
    assert findings[0].field == "status"
    assert findings[0].severity is Severity.ERROR


def test_validator_is_reusable(valid_data):
    validator = InvoiceValidator()
    bad = validator.validate(with_invoice(valid_data, status="stamped"))
    good = validator.validate(valid_data)

    assert not bad.can_stamp
    assert good.can_stamp
    assert good.errors == []


def test_findings_keep_rule_order(valid_data):
    data = with_invoice(valid_data, status="stamped", payment_method="XXX")
    data = with_company(data, name="")

    result = validate_invoice(data)
    assert codes(result.errors) == ["INVALID_STATUS", "MISSING_ISSUER_NAME", "INVALID_PAYMENT_METHOD"]


def test_warnings_never_block_stamping(valid_data):
    data = with_company(valid_data, csd_cert=None, regime="999")
    data = with_invoice(data, subtotal=Decimal("1.00"), taxes=Decimal("1.00"))

    result = validate_invoice(data)
    assert result.errors == []
    assert len(result.warnings) == 4
    assert result.can_stamp


# =============================================================================
# Issuer
# =============================================================================

@pytest.mark.parametrize("changes, code", [
    ({"rfc": ""}, "MISSING_ISSUER_RFC"),
    ({"rfc": "EKU-900317"}, "INVALID_ISSUER_RFC"),
    ({"rfc": "eku9003173c9"}, "INVALID_ISSUER_RFC"),
    ({"name": ""}, "MISSING_ISSUER_NAME"),
    ({"name": "   "}, "MISSING_ISSUER_NAME"),
    ({"regime": ""}, "MISSING_ISSUER_REGIME"),
    ({"postal_code": ""}, "MISSING_EXPEDITION_PLACE"),
    ({"postal_code": "2601"}, "INVALID_EXPEDITION_PLACE"),
    ({"postal_code": "2601A"}, "INVALID_EXPEDITION_PLACE"),
    ({"postal_code": "\uff11\uff12\uff13\uff14\uff15"}, "INVALID_EXPEDITION_PLACE"),
    ({"rfc": "EKU\u0669\u0660\u0660\u0663\u0661\u06673C9"}, "INVALID_ISSUER_RFC"),
])
def test_issuer_errors(valid_data, changes, code):
    result = validate_invoice(with_company(valid_data, **changes))

    assert code in codes(result.errors)
    assert not result.can_stamp


def test_unknown_issuer_regime_is_only_a_warning(valid_data):
    result = validate_invoice(with_company(valid_data, regime="999"))

    assert codes(result.warnings) == ["SUSPICIOUS_ISSUER_REGIME"]
    assert result.can_stamp


@pytest.mark.parametrize("missing", ["csd_cert", "csd_key", "csd_password"])
def test_missing_csd_certificates_warns(valid_data, missing):
    result = validate_invoice(with_company(valid_data, **{missing: None}))

    assert codes(result.warnings) == ["MISSING_CSD_CERTIFICATES"]
    assert result.warnings[0].field == "company.certificates"
    assert result.can_stamp


# =============================================================================
# Receiver
# =============================================================================

def test_generic_receiver_needs_no_fiscal_data(generic_data):
    result = validate_invoice(generic_data)

    assert result.errors == []
    assert "MISSING_RAZON_SOCIAL" not in codes(result.warnings)
    assert "MISSING_FISCAL_ADDRESS" not in codes(result.warnings)
    assert result.can_stamp


def test_explicit_generic_rfc_skips_receiver_checks(valid_data):
    data = with_customer(
        valid_data,
        rfc="XAXX010101000",
        razon_social=None,
        fiscal_address=None,
        fiscal_postal_code="bad",
        tax_regime=None,
    )
    result = validate_invoice(data)

    assert result.errors == []
    assert result.can_stamp


def test_missing_receiver_name(valid_data):
    result = validate_invoice(with_customer(valid_data, name=" "))
    assert codes(result.errors) == ["MISSING_RECEIVER_NAME"]


def test_invalid_receiver_rfc(valid_data):
    result = validate_invoice(with_customer(valid_data, rfc="NOT-AN-RFC"))

    assert codes(result.errors) == ["INVALID_RECEIVER_RFC"]
    assert "NOT-AN-RFC" in result.errors[0].message


def test_receiver_fiscal_fields_are_recommended(valid_data):
    result = validate_invoice(with_customer(valid_data, razon_social=None, fiscal_address=""))

    assert codes(result.warnings) == ["MISSING_RAZON_SOCIAL", "MISSING_FISCAL_ADDRESS"]
    assert result.can_stamp


def test_invalid_receiver_postal_code(valid_data):
    result = validate_invoice(with_customer(valid_data, fiscal_postal_code="123"))

    assert codes(result.errors) == ["INVALID_RECEIVER_POSTAL_CODE"]
    assert result.errors[0].field == "customer.fiscalPostalCode"


def test_missing_receiver_postal_code_uses_default(valid_data):
    result = validate_invoice(with_customer(valid_data, fiscal_postal_code=None))
    assert result.errors == []


def test_unknown_receiver_regime_warns(valid_data):
    result = validate_invoice(with_customer(valid_data, tax_regime="700"))
    assert "SUSPICIOUS_RECEIVER_REGIME" in codes(result.warnings)
    assert result.can_stamp


def test_issuer_invoicing_itself_warns(valid_data):
    result = validate_invoice(with_customer(valid_data, rfc="EKU9003173C9"))

    assert codes(result.warnings) == ["SAME_ISSUER_RECEIVER_RFC"]
    assert result.can_stamp


# =============================================================================
# Items
# =============================================================================

def test_no_items(valid_data):
    result = validate_invoice(replace(valid_data, items=[]))

    assert codes(result.errors) == ["NO_ITEMS"]
    assert not result.can_stamp


def test_zero_quantity_blocks_stamping(valid_data):
    items = [make_item(quantity="0"), valid_data.items[1]]
    result = validate_invoice(replace(valid_data, items=items))

    assert codes(result.errors) == ["INVALID_ITEM_QUANTITY"]
    assert result.errors[0].field == "items[0].quantity"
    assert "concepto 1" in result.errors[0].message
    assert not result.can_stamp


@pytest.mark.parametrize("kwargs, code", [
    ({"quantity": "-1"}, "INVALID_ITEM_QUANTITY"),
    ({"quantity": None}, "INVALID_ITEM_QUANTITY"),
    ({"unit_price": "-0.01"}, "INVALID_ITEM_PRICE"),
    ({"unit_price": None}, "INVALID_ITEM_PRICE"),
    ({"total_price": "-100"}, "INVALID_ITEM_TOTAL"),
    ({"total_price": None}, "INVALID_ITEM_TOTAL"),
])
def test_item_amount_errors(valid_data, kwargs, code):
    result = validate_invoice(replace(valid_data, items=[make_item(**kwargs)]))
    assert code in codes(result.errors)
    assert not result.can_stamp


def test_zero_price_is_allowed(valid_data):
    items = [make_item(unit_price="0", total_price="0")]
    data = with_invoice(replace(valid_data, items=items), subtotal=Decimal("0"), taxes=Decimal("0"))

    result = validate_invoice(data)
    assert result.errors == []


def test_description_falls_back_to_product_name(valid_data):
    result = validate_invoice(replace(valid_data, items=[make_item(description=None)]))
    assert "MISSING_ITEM_DESCRIPTION" not in codes(result.errors)


def test_item_without_product_or_description(valid_data):
    items = [make_item(description="  ", with_product=False), valid_data.items[1]]
    result = validate_invoice(replace(valid_data, items=items))

    assert codes(result.errors) == ["MISSING_ITEM_DESCRIPTION"]
    assert codes(result.warnings) == [
        "MISSING_SAT_PRODUCT_KEY",
        "MISSING_SAT_UNIT_KEY",
        "MISSING_SALE_UNIT",
    ]


def test_missing_sat_keys_only_warn(valid_data):
    product = replace(valid_data.items[0].product, sat_key=None, sat_unit_key="")
    items = [make_item(product=product), valid_data.items[1]]
    result = validate_invoice(replace(valid_data, items=items))

    assert result.errors == []
    assert codes(result.warnings) == ["MISSING_SAT_PRODUCT_KEY", "MISSING_SAT_UNIT_KEY"]
    assert all(w.severity is Severity.WARNING for w in result.warnings)
    assert result.can_stamp


def test_item_findings_are_indexed(valid_data):
    product = replace(valid_data.items[0].product, sale_unit=None)
    items = [valid_data.items[0], make_item("item-2", product=product)]
    result = validate_invoice(replace(valid_data, items=items))

    assert result.warnings[0].field == "items[1].saleUnit"
    assert "concepto 2" in result.warnings[0].message


# =============================================================================
# Payment
# =============================================================================

def test_missing_payment_fields_use_defaults(valid_data):
    result = validate_invoice(with_invoice(valid_data, payment_method=None, payment_form=None))
    assert result.errors == []


@pytest.mark.parametrize("method", ["PPD", "PUE"])
def test_valid_payment_methods(valid_data, method):
    assert validate_invoice(with_invoice(valid_data, payment_method=method)).can_stamp


def test_invalid_payment_method(valid_data):
    result = validate_invoice(with_invoice(valid_data, payment_method="pue"))
    assert codes(result.errors) == ["INVALID_PAYMENT_METHOD"]


@pytest.mark.parametrize("form", ["07", "1", "100", "32"])
def test_invalid_payment_form(valid_data, form):
    result = validate_invoice(with_invoice(valid_data, payment_form=form))
    assert codes(result.errors) == ["INVALID_PAYMENT_FORM"]


# =============================================================================
# Amounts
# =============================================================================

def test_calculate_subtotal_ignores_missing_totals():
    items = [make_item(total_price="10.50"), make_item(total_price=None), make_item(total_price="0.25")]
    assert calculate_subtotal(items) == Decimal("10.75")


def test_subtotal_mismatch_warns(valid_data):
    result = validate_invoice(with_invoice(valid_data, subtotal=Decimal("210.00"), taxes=Decimal("32.00")))

    assert codes(result.warnings) == ["SUBTOTAL_MISMATCH"]
    assert "$210.00" in result.warnings[0].message
    assert "$200.00" in result.warnings[0].message
    assert result.can_stamp


def test_taxes_mismatch_warns(valid_data):
    result = validate_invoice(with_invoice(valid_data, taxes=Decimal("30.00")))

    assert codes(result.warnings) == ["TAXES_MISMATCH"]
    assert "$32.00" in result.warnings[0].message


def test_amounts_within_tolerance(valid_data):
    data = with_invoice(valid_data, subtotal=Decimal("200.01"), taxes=Decimal("31.99"))
    assert validate_invoice(data).warnings == []


def test_missing_stored_amounts_are_not_checked(valid_data):
    data = with_invoice(valid_data, subtotal=None, taxes=None)
    assert validate_invoice(data).warnings == []


def test_amounts_accept_plain_numbers(valid_data):
    data = with_invoice(valid_data, subtotal=200, taxes=32.0)
    assert validate_invoice(data).warnings == []


def test_custom_tax_policy(valid_data):
    policy = TaxPolicy(iva_rate=Decimal("0.08"), tolerance=Decimal("0.50"))

    border = with_invoice(valid_data, taxes=Decimal("16.00"))
    assert InvoiceValidator(policy=policy).validate(border).warnings == []

    default = validate_invoice(border)
    assert codes(default.warnings) == ["TAXES_MISMATCH"]


# =============================================================================
# CFDI use
# =============================================================================

def test_missing_cfdi_use_warns(valid_data):
    data = with_customer(with_invoice(valid_data, cfdi_use=None), uso_cfdi=None)
    result = validate_invoice(data)

    assert codes(result.warnings) == ["MISSING_CFDI_USE"]
    assert result.can_stamp


def test_cfdi_use_falls_back_to_customer(valid_data):
    data = with_customer(with_invoice(valid_data, cfdi_use=None), uso_cfdi="G01")
    assert validate_invoice(data).warnings == []


@pytest.mark.parametrize("use", ["X99", "G04", "P01", "g03"])
def test_invalid_cfdi_use(valid_data, use):
    result = validate_invoice(with_invoice(valid_data, cfdi_use=use))

    assert codes(result.errors) == ["INVALID_CFDI_USE"]
    assert not result.can_stamp


def test_cfdi_use_incompatible_with_regime_warns(valid_data):
    s01_for_company = with_invoice(valid_data, cfdi_use="S01")
    assert codes(validate_invoice(s01_for_company).warnings) == ["CFDI_USE_REGIME_MISMATCH"]

    g03_for_616 = with_customer(valid_data, tax_regime="616")
    assert codes(validate_invoice(g03_for_616).warnings) == ["CFDI_USE_REGIME_MISMATCH"]


def test_s01_for_616_is_compatible(valid_data):
    data = with_customer(with_invoice(valid_data, cfdi_use="S01"), tax_regime="616")
    assert validate_invoice(data).warnings == []


# =============================================================================
# Validator composition and result
# =============================================================================

def test_custom_rule_list(valid_data):
    validator = InvoiceValidator(rules=[validate_invoice_status])
    data = with_company(with_invoice(valid_data, status="stamped"), name="")

    assert codes(validator.validate(data).errors) == ["INVALID_STATUS"]


def test_default_rules_order():
    assert DEFAULT_RULES[0] is validate_invoice_status
    assert len(DEFAULT_RULES) == 8


def test_result_to_dict(valid_data):
    result = validate_invoice(with_invoice(valid_data, status="stamped", taxes=Decimal("0")))
    payload = result.to_dict()

    assert payload["isValid"] is False
    assert payload["canStamp"] is False
    assert payload["canPreview"] is True
    assert payload["errors"][0] == {
        "field": "status",
        "message": "La factura no está en estado pendiente (estado actual: stamped)",
        "severity": "error",
        "code": "INVALID_STATUS",
    }
    assert payload["warnings"][0]["severity"] == "warning"


def test_result_from_findings_splits_by_severity(valid_data):
    findings = validate_invoice(with_invoice(valid_data, status="stamped", taxes=None)).errors
    result = ValidationResult.from_findings(findings)
    assert result.codes == ["INVALID_STATUS"]
    assert ValidationResult().can_stamp

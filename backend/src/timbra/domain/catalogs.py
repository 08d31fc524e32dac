"""
SAT catalogs and small helpers for CFDI 4.0.

Maps SAT codes (c_UsoCFDI, c_FormaPago, c_MetodoPago, c_RegimenFiscal,
c_ClaveProdServ, c_ClaveUnidad, c_ObjetoImp) to their descriptions, and
provides the default-selection heuristics used when an invoice leaves a
field empty.

Only the subset of each catalog the ERP works with is included.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, localcontext

from .rfc import FOREIGN_RFC, GENERIC_RFC


DEFAULT_IVA_RATE = Decimal("0.16")
CENT = Decimal("0.01")

CFDI_USES: dict[str, str] = {
    "G01": "Adquisición de mercancías",
    "G02": "Devoluciones, descuentos o bonificaciones",
    "G03": "Gastos en general",
    "G04": "Construcciones",
    "I01": "Construcciones",
    "I02": "Mobiliario y equipo de oficina por inversiones",
    "I03": "Equipo de transporte",
    "I04": "Equipo de cómputo y accesorios",
    "I05": "Dados, troqueles, moldes, matrices y herramental",
    "I06": "Comunicaciones telefónicas",
    "I07": "Comunicaciones satelitales",
    "I08": "Otra maquinaria y equipo",
    "D01": "Honorarios médicos, dentales y gastos hospitalarios",
    "D02": "Gastos médicos por incapacidad o discapacidad",
    "D03": "Gastos funerales",
    "D04": "Donativos",
    "D05": "Intereses reales efectivamente pagados por créditos hipotecarios",
    "D06": "Aportaciones voluntarias al SAR",
    "D07": "Primas por seguros de gastos médicos",
    "D08": "Gastos de transportación escolar obligatoria",
    "D09": "Depósitos en cuentas para el ahorro, primas que tengan como base planes de pensiones",
    "D10": "Pagos por servicios educativos (colegiaturas)",
    "S01": "Sin efectos fiscales",
    "CP01": "Pagos",
    "CN01": "Nómina",
    "P01": "Por definir",
}

PAYMENT_METHODS: dict[str, str] = {
    "PUE": "Pago en una sola exhibición",
    "PPD": "Pago en parcialidades o diferido",
}

PAYMENT_FORMS: dict[str, str] = {
    "01": "Efectivo",
    "02": "Cheque nominativo",
    "03": "Transferencia electrónica de fondos",
    "04": "Tarjeta de crédito",
    "05": "Monedero electrónico",
    "06": "Dinero electrónico",
    "08": "Vales de despensa",
    "12": "Dación en pago",
    "13": "Pago por subrogación",
    "14": "Pago por consignación",
    "15": "Condonación",
    "17": "Compensación",
    "23": "Novación",
    "24": "Confusión",
    "25": "Remisión de deuda",
    "26": "Prescripción o caducidad",
    "27": "A satisfacción del acreedor",
    "28": "Tarjeta de débito",
    "29": "Tarjeta de servicios",
    "30": "Aplicación de anticipos",
    "31": "Intermediario pagos",
    "99": "Por definir",
}

FISCAL_REGIMES: dict[str, str] = {
    "601": "General de Ley Personas Morales",
    "603": "Personas Morales con Fines no Lucrativos",
    "605": "Sueldos y Salarios",
    "606": "Arrendamiento",
    "607": "Régimen de Enajenación o Adquisición de Bienes",
    "608": "Demás ingresos",
    "610": "Residentes en el Extranjero sin Establecimiento Permanente en México",
    "611": "Ingresos por Dividendos (socios y accionistas)",
    "612": "Personas Físicas con Actividades Empresariales y Profesionales",
    "614": "Ingresos por intereses",
    "616": "Sin obligaciones fiscales",
    "620": "Sociedades Cooperativas de Producción que optan por diferir sus ingresos",
    "621": "Incorporación Fiscal",
    "622": "Actividades Agrícolas, Ganaderas, Silvícolas y Pesqueras",
    "623": "Opcional para Grupos de Sociedades",
    "624": "Coordinados",
    "625": "Régimen de las Actividades Empresariales con ingresos a través de Plataformas Tecnológicas",
    "626": "Régimen Simplificado de Confianza",
}

# Common c_ClaveProdServ keys
SAT_PRODUCT_KEYS: dict[str, str] = {
    "01010101": "No existe en el catálogo",
    "50171700": "Servicios de facturación",
    "50211506": "Servicios de cómputo",
    "50201713": "Servicios de desarrollo de software",
    "43201800": "Equipo de cómputo",
    "44121600": "Papelería y artículos de oficina",
    "60121100": "Servicios de consultoría",
    "72101500": "Servicios de limpieza",
    "81101500": "Servicios de publicidad",
    "82101500": "Servicios de impresión",
}

SAT_UNIT_KEYS: dict[str, str] = {
    "H87": "Pieza",
    "ACT": "Actividad",
    "E48": "Unidad de servicio",
    "EA": "Elemento",
    "HR": "Hora",
    "DAY": "Día",
    "MTR": "Metro",
    "KGM": "Kilogramo",
    "LTR": "Litro",
    "MTK": "Metro cuadrado",
    "MTQ": "Metro cúbico",
}

TAX_OBJECTS: dict[str, str] = {
    "01": "No objeto de impuesto",
    "02": "Sí objeto de impuesto",
    "03": "Sí objeto del impuesto y no obligado al desglose",
}

# Code sets accepted by the invoice validator. These are intentionally not
# derived from the description tables above: the validator also accepts the
# legacy 609/615 regimes and rejects G04/P01.
VALID_PAYMENT_METHODS = frozenset({"PUE", "PPD"})

VALID_PAYMENT_FORMS = frozenset({
    "01", "02", "03", "04", "05", "06", "08", "12", "13", "14", "15",
    "17", "23", "24", "25", "26", "27", "28", "29", "30", "31", "99",
})

VALID_TAX_REGIMES = frozenset({
    "601", "603", "605", "606", "607", "608", "609", "610", "611", "612",
    "614", "615", "616", "620", "621", "622", "623", "624", "625", "626",
})

VALID_CFDI_USES = frozenset({
    "G01", "G02", "G03",
    "I01", "I02", "I03", "I04", "I05", "I06", "I07", "I08",
    "D01", "D02", "D03", "D04", "D05", "D06", "D07", "D08", "D09", "D10",
    "S01", "CP01", "CN01",
})

# Uses a customer may register as their own (excludes CP01/CN01)
CUSTOMER_CFDI_USES = VALID_CFDI_USES - {"CP01", "CN01"}

NO_TAX_OBLIGATIONS_REGIME = "616"
NO_TAX_EFFECTS_USE = "S01"
GENERAL_EXPENSES_USE = "G03"

_STRICT_RFC_RE = re.compile(r"^[A-ZÑ&]{3,4}[0-9]{6}[A-V1-9][A-Z1-9][0-9A]$")
_ZIP_CODE_RE = re.compile(r"^[0-9]{5}$")


def get_default_cfdi_use(fiscal_regime: str | None = None) -> str:
    """Pick the CFDI use applied when an invoice does not specify one."""
    if fiscal_regime == NO_TAX_OBLIGATIONS_REGIME:
        return NO_TAX_EFFECTS_USE
    return GENERAL_EXPENSES_USE


def get_recommended_cfdi_use(fiscal_regime: str | None = None) -> str:
    """
    Suggest a CFDI use for a receiver's fiscal regime.

    Salaried (605), leasing (606) and company regimes (601, 603) all land on
    G03; only 616 maps to S01.
    """
    return get_default_cfdi_use(fiscal_regime)


def validate_expedition_place_for_rfc(
    rfc: str,
    expedition_place: str,
    tax_zip_code: str,
) -> str:
    """
    Resolve the expedition place (LugarExpedicion) for a receiver.

    For generic receivers SAT requires the expedition place and the
    receiver's tax zip code to coincide, so the receiver's zip wins.
    """
    if rfc in (GENERIC_RFC, FOREIGN_RFC):
        return tax_zip_code or expedition_place
    return expedition_place


def is_valid_rfc(rfc: str | None) -> bool:
    """Strict SAT check, including the homoclave character ranges."""
    if not rfc:
        return False
    return bool(_STRICT_RFC_RE.fullmatch(rfc.upper()))


def validate_cfdi_use_for_regime(cfdi_use: str, fiscal_regime: str | None = None) -> bool:
    """
    Check that a CFDI use is compatible with the receiver's fiscal regime.

    Regime 616 (no tax obligations) only admits S01, and S01 is reserved
    for regime 616.
    """
    if not fiscal_regime:
        return True

    if fiscal_regime == NO_TAX_OBLIGATIONS_REGIME:
        return cfdi_use == NO_TAX_EFFECTS_USE

    return cfdi_use != NO_TAX_EFFECTS_USE


def to_decimal(amount: Decimal | float | int | str) -> Decimal:
    """Convert a number to Decimal without inheriting float noise."""
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def round_amount(amount: Decimal | float | int | str) -> Decimal:
    """Round a fiscal amount to cents, half away from zero."""
    value = to_decimal(amount)
    with localcontext() as ctx:
        # Room for every integer digit, two decimals and a carry
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal | float | int | str) -> str:
    """Render an amount the way CFDI attributes expect it (two decimals)."""
    return f"{round_amount(amount):.2f}"


def calculate_taxes(
    subtotal: Decimal | float | int | str,
    tax_rate: Decimal | float | str = DEFAULT_IVA_RATE,
) -> tuple[Decimal, Decimal]:
    """
    Compute transferred tax and total for a subtotal.

    Returns:
        (tax, total), both rounded to cents
    """
    base = to_decimal(subtotal)
    tax = base * to_decimal(tax_rate)
    return round_amount(tax), round_amount(base + tax)


def is_valid_mexican_zip_code(zip_code: str | None) -> bool:
    if not zip_code:
        return False
    return bool(_ZIP_CODE_RE.fullmatch(zip_code))


def get_cfdi_use_description(cfdi_use: str) -> str:
    return CFDI_USES.get(cfdi_use, "Uso CFDI no reconocido")


def get_payment_form_description(payment_form: str) -> str:
    return PAYMENT_FORMS.get(payment_form, "Forma de pago no reconocida")


def get_fiscal_regime_description(fiscal_regime: str) -> str:
    return FISCAL_REGIMES.get(fiscal_regime, "Régimen fiscal no reconocido")


def validate_tax_object(tax_object: str) -> bool:
    return tax_object in TAX_OBJECTS

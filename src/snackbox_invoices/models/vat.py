"""German USt/MwSt rates and helpers."""

from decimal import Decimal

# German VAT rates
NORMAL_RATE = Decimal("19")        # Regelsatz
REDUCED_RATE = Decimal("7")        # Ermäßigter Satz (food, most snacks)
ZERO_RATE = Decimal("0")           # Steuerfrei

RATE_LABELS = {
    NORMAL_RATE: "Regelsatz (19%)",
    REDUCED_RATE: "Ermäßigt (7%)",
    ZERO_RATE: "Steuerfrei",
}


def compute_vat(gross: Decimal, rate: Decimal) -> Decimal:
    """Compute VAT amount from gross and rate percentage."""
    if rate == ZERO_RATE:
        return Decimal("0")
    return (gross * rate / (100 + rate)).quantize(Decimal("0.01"))


def rate_label(rate: Decimal) -> str:
    return RATE_LABELS.get(rate, f"{rate}%")

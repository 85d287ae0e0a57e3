"""Shared fixtures: sample invoice texts, a catalog, ledger helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from snackbox_invoices.models.catalog import ProductCatalogEntry
from snackbox_invoices.stock.ledger import StockLedger
from snackbox_invoices.storage.memory import InMemoryLedgerStore

REWE_TEXT = """\
REWE Markt GmbH
Musterstrasse 1

POM.LEBERW.FEIN 1,19 B
COLA ZERO 5,25 B
3 Stk x 1,75
LEERGUT -0,25 B
--------------------
SUMME EUR 6,19
B= 7,0% 1,11 0,08 1,19
Bonus-Aktion(en) 0.10 EUR
Mastercard 6,19 EUR
Datum: 29.12.2025
Beleg-Nr. 9862
TSE-Signatur: abc123
"""

SELGROS_TEXT = """\
Selgros Cash & Carry
Belegnummer: 4711
Belegdatum: 20.12.2025 18:00
Pos. GTIN Bezeichnung Menge Inhalt VP Einzelpreis* Warenwert* MwSt
1 4059586509519 SCHWEINEGESCHNETZELTES GYROS 1,145 1 kg 8,400 9,62 7,0 %
2 4006040012345 HARIBO GOLDBAEREN 200G 12 1 ST 0,890 10,68 7,0 %
3 4000000000001 PFAND FLASCHE 12 1 ST 0,250 3,00 19,0 %
7,0 % 18,97 1,33 20,30
EUR 23,30
"""

SONDERPOSTEN_TEXT = """\
Lebensmittel-Sonderposten
Hapex GmbH
Belegnummer 100234
Datum: 21.07.2025, 12:45:24
Pos. Art.-Nr. Bezeichnung Menge MwSt Einzelpreis Gesamtpreis
1 SW25617 M&Ms USA Peanut Butter Chocolate Candies 963,9g MHD:30.7.25 2 7 % 21,00 € 42,00 €
2 SW10001 Pringles Sour Cream & Onion 3 7 % 2,49 € 7,47 €
Family Pack
24 Versand + Verpackungskosten 1 7 % 6,99 € 6,99 €
Gesamtsumme 56,46 €
"""

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def at(days: float = 0) -> datetime:
    """A timezone-aware timestamp ``days`` after T0."""
    return T0 + timedelta(days=days)


@pytest.fixture
def catalog():
    return [
        ProductCatalogEntry(id=1, name="Pommersche Leberwurst fein", barcodes=["4000339012345"]),
        ProductCatalogEntry(id=2, name="Haribo Goldbären", barcodes=["4006040012345"]),
        ProductCatalogEntry(id=3, name="Coca-Cola Zero", barcodes=[]),
        ProductCatalogEntry(id=4, name="Pringles Sour Cream & Onion", barcodes=[]),
    ]


@pytest.fixture
def ledger():
    return StockLedger(InMemoryLedgerStore())

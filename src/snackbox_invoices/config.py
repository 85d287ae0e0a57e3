"""Configuration: paths, matching threshold, defaults."""

import os
from pathlib import Path

# Base directory for data storage
DATA_DIR = Path(os.environ.get("SNACKBOX_DATA_DIR", Path.cwd() / "data"))
LEDGER_PATH = DATA_DIR / "ledger.json"
INVOICES_PATH = DATA_DIR / "invoices.json"
CATALOG_PATH = DATA_DIR / "catalog.json"

# Minimum similarity (0-1) for a fuzzy product name match to be accepted
MATCH_THRESHOLD = float(os.environ.get("SNACKBOX_MATCH_THRESHOLD", "0.75"))

LOG_LEVEL = os.environ.get("SNACKBOX_LOG_LEVEL", "WARNING")

# German suppliers only
DEFAULT_CURRENCY = "EUR"

# Supported invoice file extensions
SUPPORTED_EXTENSIONS = {".txt", ".pdf"}

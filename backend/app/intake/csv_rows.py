"""
Bulk file import: CSV text -> raw row dicts for the normalizer.

Headers are matched case-insensitively against common bank-export names.
Rows are returned as-is (no validation); the per-row pipeline reports errors.
"""

from __future__ import annotations

import csv
import io
from typing import Dict, List, Optional

HEADER_ALIASES: Dict[str, str] = {
    "date": "date",
    "transaction date": "date",
    "posted date": "date",
    "posting date": "date",
    "amount": "amount",
    "transaction amount": "amount",
    "merchant": "merchant",
    "payee": "merchant",
    "name": "merchant",
    "description": "description",
    "memo": "notes",
    "notes": "notes",
    "category": "category",
    "subcategory": "subcategory",
    "type": "type",
    "transaction type": "type",
    "account": "account",
    "account name": "account",
}


def _canonical_header(header: Optional[str]) -> Optional[str]:
    key = (header or "").strip().lower()
    return HEADER_ALIASES.get(key)

def _mapped(headers: List[Optional[str]], values: List[str]) -> dict:
    row: dict = {}
    for header, value in zip(headers, values):
        if header is None:
            continue
        if header in row and row[header]:
            continue
        row[header] = value.strip()
    # Exports with only a description column use it as the merchant.
    if not row.get("merchant") and row.get("description"):
        row["merchant"] = row["description"]
    return row if any(row.values()) else {}


def parse_csv_rows(text: str) -> List[dict]:
    """
    One dict per data line after the header, so row indexes in import errors
    match the file. Blank lines inside the data come back as empty dicts;
    trailing ones are dropped.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    headers: Optional[List[Optional[str]]] = None
    rows: List[dict] = []
    for values in reader:
        if headers is None:
            if any(v.strip() for v in values):
                headers = [_canonical_header(v) for v in values]
            continue
        rows.append(_mapped(headers, values))
    while rows and not rows[-1]:
        rows.pop()
    return rows

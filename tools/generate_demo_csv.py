# tools/generate_demo_csv.py
from __future__ import annotations

import csv
import io
import random
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import List, Tuple

Row = Tuple[str, str, str, str, str]

HEADER = ["Date", "Payee", "Amount", "Type", "Account"]


@dataclass(frozen=True)
class Spend:
    merchants: Tuple[str, ...]
    min_amt: float
    max_amt: float
    per_week: float  # expected visits


SPENDING: List[Spend] = [
    Spend(("Starbucks", "Blue Bottle Coffee", "Corner Cafe"), 3.5, 9, 4.0),
    Spend(("Trader Joe's", "Whole Foods", "Safeway"), 25, 140, 1.5),
    Spend(("Chipotle", "Pizza Hut", "DoorDash"), 12, 45, 1.5),
    Spend(("Uber", "Lyft", "Shell Gas"), 9, 60, 1.2),
    Spend(("Amazon", "Target", "Best Buy"), 15, 220, 0.8),
    Spend(("AMC Theatres", "Steam Games"), 10, 60, 0.4),
    Spend(("CVS Pharmacy", "Walgreens"), 8, 70, 0.3),
]

BILLS: List[Tuple[int, str, float]] = [
    (1, "Greenway Apartments Rent", 1650.00),
    (5, "Netflix", 15.49),
    (12, "City Electric Utility", 82.00),
    (18, "Spotify", 10.99),
    (22, "Comcast Internet", 70.00),
]

ACCOUNTS = ["Checking", "Visa Card"]


def daterange(start: date, end: date):
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def _money(value: float) -> str:
    return f"{value:.2f}"


def generate(start: date, end: date, seed: int = 7, paycheck: float = 2400.0) -> List[Row]:
    """Synthetic household ledger: biweekly pay, monthly bills, everyday spending."""
    rng = random.Random(seed)
    rows: List[Row] = []

    for d in daterange(start, end):
        # Paid every other Friday
        if d.weekday() == 4 and (d - start).days // 7 % 2 == 0:
            rows.append((d.isoformat(), "ACME Corp Payroll", _money(paycheck), "credit", "Checking"))

        for day, merchant, amount in BILLS:
            if d.day == day:
                rows.append((d.isoformat(), merchant, _money(amount), "debit", "Checking"))

        for spend in SPENDING:
            if rng.random() < spend.per_week / 7:
                amount = rng.uniform(spend.min_amt, spend.max_amt)
                rows.append(
                    (d.isoformat(), rng.choice(spend.merchants), _money(amount), "debit", rng.choice(ACCOUNTS))
                )

    rows.sort(key=lambda r: r[0])
    return rows


def render_csv(rows: List[Row]) -> str:
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(HEADER)
    w.writerows(rows)
    return buf.getvalue()


def write_csv(path: Path, rows: List[Row]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_csv(rows), encoding="utf-8")


if __name__ == "__main__":
    out = Path("demo_data/transactions_2025.csv")
    rows = generate(start=date(2025, 1, 1), end=date(2025, 12, 31), seed=42)
    write_csv(out, rows)
    print(f"Wrote {len(rows)} rows to {out}")

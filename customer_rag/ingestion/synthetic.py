"""Generate synthetic customer profiles for development and demos.

Usage:
    python -m customer_rag.ingestion.synthetic --count 1000 --seed 42 --output data/customers.json
"""

import argparse
import json
import random
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Optional

FIRST_NAMES = [
    "John", "Jane", "Michael", "Emma", "William", "Olivia", "James", "Sophia",
    "Robert", "Ava", "David", "Isabella", "Joseph", "Mia", "Thomas", "Charlotte",
]
LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Rodriguez", "Martinez", "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson", "Thomas",
]
LOAN_TYPES = ["Personal", "Auto", "Home", "Education"]
RISK_PROFILES = ["Conservative", "Moderate", "Aggressive"]
TRANSACTION_TYPES = ["Deposit", "Withdrawal", "Transfer", "Payment", "Purchase"]
DEBIT_TYPES = {"Withdrawal", "Payment", "Purchase"}
TRANSACTION_DESCRIPTIONS = [
    "Grocery Store", "Salary", "Rent Payment", "Utility Bill", "Online Shopping",
    "Restaurant", "Gas Station", "Transfer to Savings", "ATM Withdrawal", "Subscription",
]
STREETS = ["Main St", "Oak Ave", "Maple Rd", "Washington Blvd", "Park Lane", "Cedar Dr"]
CITIES = ["New York", "Los Angeles", "Chicago", "Houston", "Phoenix", "Philadelphia", "San Antonio", "San Diego"]
STATES = ["NY", "CA", "IL", "TX", "AZ", "PA", "FL", "OH"]
NOTES = [
    "Prefers email communication",
    "Interested in investment opportunities",
    "Considering a home loan",
    "Recently updated contact information",
    "Frequent traveler, uses card internationally",
    "Prefers in-person banking",
    "Has referred multiple customers",
    "",
    "",
    "",
]

ID_OFFSET = 100000


def _random_date(rng: random.Random, start: date, end: date) -> str:
    span = max((end - start).days, 0)
    return (start + timedelta(days=rng.randint(0, span))).isoformat()


def _money(rng: random.Random, low: float, spread: float) -> float:
    return round(rng.random() * spread + low, 2)


def _products(rng: random.Random, index: int, today: date) -> list[dict[str, Any]]:
    products: list[dict[str, Any]] = []
    if rng.random() > 0.3:
        products.append({
            "type": "Savings Account",
            "accountNumber": f"SA-{100000 + index}",
            "balance": _money(rng, 1000, 50000),
            "interestRate": _money(rng, 0.5, 2),
            "openedDate": _random_date(rng, date(2015, 1, 1), today),
        })
    if rng.random() > 0.4:
        products.append({
            "type": "Checking Account",
            "accountNumber": f"CA-{200000 + index}",
            "balance": _money(rng, 500, 20000),
            "monthlyFee": _money(rng, 0, 15),
            "openedDate": _random_date(rng, date(2015, 1, 1), today),
        })
    if rng.random() > 0.5:
        products.append({
            "type": "Credit Card",
            "cardNumber": f"CC-{300000 + index}",
            "creditLimit": rng.randint(1000, 30000),
            "currentBalance": _money(rng, 0, 10000),
            "interestRate": _money(rng, 12, 10),
            "issueDate": _random_date(rng, date(2018, 1, 1), today),
        })
    if rng.random() > 0.7:
        products.append({
            "type": f"{rng.choice(LOAN_TYPES)} Loan",
            "loanNumber": f"LN-{400000 + index}",
            "originalAmount": _money(rng, 5000, 500000),
            "outstandingBalance": _money(rng, 1000, 400000),
            "interestRate": _money(rng, 3, 8),
            "startDate": _random_date(rng, date(2015, 1, 1), today),
            "term": rng.choice([12, 24, 36, 48, 60, 120, 180, 240, 360]),
        })
    if rng.random() > 0.6:
        products.append({
            "type": "Fixed Deposit",
            "accountNumber": f"FD-{500000 + index}",
            "principal": _money(rng, 10000, 100000),
            "interestRate": _money(rng, 2, 3),
            "startDate": _random_date(rng, date(2018, 1, 1), today),
            "term": rng.choice([3, 6, 12, 24, 36, 60]),
        })
    if rng.random() > 0.8:
        products.append({
            "type": "Investment Portfolio",
            "accountNumber": f"IP-{600000 + index}",
            "currentValue": _money(rng, 5000, 200000),
            "initialInvestment": _money(rng, 5000, 150000),
            "startDate": _random_date(rng, date(2015, 1, 1), today),
            "riskProfile": rng.choice(RISK_PROFILES),
        })
    return products


def _transactions(rng: random.Random, today: date) -> list[dict[str, Any]]:
    transactions = []
    for _ in range(rng.randint(3, 10)):
        kind = rng.choice(TRANSACTION_TYPES)
        amount = _money(rng, 10, 1000)
        if kind in DEBIT_TYPES:
            amount = -amount
        transactions.append({
            "date": _random_date(rng, today - timedelta(days=30), today),
            "type": kind,
            "amount": amount,
            "description": rng.choice(TRANSACTION_DESCRIPTIONS),
        })
    # Newest first
    transactions.sort(key=lambda t: t["date"], reverse=True)
    return transactions


def generate_customer(index: int, rng: random.Random, today: Optional[date] = None) -> dict[str, Any]:
    """Generate one customer dict in the source JSON (camelCase) format."""
    today = today or date.today()
    first_name = rng.choice(FIRST_NAMES)
    last_name = rng.choice(LAST_NAMES)
    products = _products(rng, index, today)
    transactions = _transactions(rng, today)
    return {
        "id": index,
        "customerId": f"CUST-{ID_OFFSET + index}",
        "firstName": first_name,
        "lastName": last_name,
        "email": f"{first_name.lower()}.{last_name.lower()}{rng.randint(1, 999)}@example.com",
        "phoneNumber": f"({rng.randint(100, 999)}) {rng.randint(100, 999)}-{rng.randint(1000, 9999)}",
        "address": {
            "street": f"{rng.randint(100, 9999)} {rng.choice(STREETS)}",
            "city": rng.choice(CITIES),
            "state": rng.choice(STATES),
            "zipCode": str(rng.randint(10000, 99999)),
        },
        "dateOfBirth": _random_date(rng, date(1960, 1, 1), date(2000, 1, 1)),
        "joinDate": _random_date(rng, date(2010, 1, 1), today),
        "customerRating": rng.randint(1, 5),
        "products": products,
        "recentTransactions": transactions,
        "notes": rng.choice(NOTES),
    }


def generate_customers(count: int, seed: Optional[int] = None, today: Optional[date] = None) -> list[dict[str, Any]]:
    """Generate count customers with ids CUST-100001 onwards."""
    rng = random.Random(seed)
    return [generate_customer(i, rng, today) for i in range(1, count + 1)]


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Generate synthetic customer profiles")
    parser.add_argument("--count", type=int, default=1000, help="Number of customers (default: 1000)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    parser.add_argument("--output", default="data/customers.json", help="Output JSON path")
    args = parser.parse_args(argv)

    customers = generate_customers(args.count, seed=args.seed)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(customers, indent=2), encoding="utf-8")
    print(f"Wrote {len(customers)} customers to {output}")


if __name__ == "__main__":
    main()

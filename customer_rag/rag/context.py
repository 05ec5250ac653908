"""Render retrieved customer records as the text context handed to the generator."""

from typing import List, Sequence

from customer_rag.models import (
    CheckingAccount,
    CreditCard,
    CustomerRecord,
    FixedDeposit,
    InvestmentPortfolio,
    Loan,
    Product,
    SavingsAccount,
)

RECORD_SEPARATOR = "\n" + "=" * 50 + "\n\n"
MAX_TRANSACTIONS = 5
NO_RESULTS_CONTEXT = "No relevant customer information found."


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _product_details(product: Product) -> List[str]:
    """Variant-specific detail lines for one product."""
    if isinstance(product, SavingsAccount):
        return [
            f"Balance: {_money(product.balance)}",
            f"Interest Rate: {product.interest_rate}%",
            f"Opened: {product.opened_date or 'N/A'}",
        ]
    if isinstance(product, CheckingAccount):
        return [
            f"Balance: {_money(product.balance)}",
            f"Monthly Fee: {_money(product.monthly_fee)}",
            f"Opened: {product.opened_date or 'N/A'}",
        ]
    if isinstance(product, CreditCard):
        return [
            f"Credit Limit: {_money(product.credit_limit)}",
            f"Current Balance: {_money(product.current_balance)}",
            f"Interest Rate: {product.interest_rate}%",
            f"Issued: {product.issue_date or 'N/A'}",
        ]
    if isinstance(product, Loan):
        return [
            f"Original Amount: {_money(product.original_amount)}",
            f"Outstanding Balance: {_money(product.outstanding_balance)}",
            f"Interest Rate: {product.interest_rate}%",
            f"Term: {product.term} months",
            f"Started: {product.start_date or 'N/A'}",
        ]
    if isinstance(product, FixedDeposit):
        return [
            f"Principal: {_money(product.principal)}",
            f"Interest Rate: {product.interest_rate}%",
            f"Term: {product.term} months",
            f"Started: {product.start_date or 'N/A'}",
        ]
    if isinstance(product, InvestmentPortfolio):
        return [
            f"Current Value: {_money(product.current_value)}",
            f"Initial Investment: {_money(product.initial_investment)}",
            f"Risk Profile: {product.risk_profile}",
            f"Started: {product.start_date or 'N/A'}",
        ]
    raise TypeError(f"Unsupported product variant: {type(product).__name__}")


def format_customer(record: CustomerRecord) -> str:
    """Render one customer: identity block, PRODUCTS, then RECENT TRANSACTIONS."""
    rating = f"{record.customer_rating}/5" if record.customer_rating is not None else "N/A"
    lines = [
        f"CUSTOMER ID: {record.customer_id}",
        f"NAME: {record.full_name}",
        f"EMAIL: {record.email}",
        f"PHONE: {record.phone_number}",
        f"ADDRESS: {record.address.format()}",
        f"CUSTOMER RATING: {rating}",
        "",
        "PRODUCTS:",
    ]
    if record.products:
        for product in record.products:
            details = _product_details(product)
            lines.append(f"- {product.type} ({product.number})")
            lines.extend(f"  {detail}" for detail in details)
    else:
        lines.append("No products found.")

    lines.append("")
    lines.append("RECENT TRANSACTIONS:")
    if record.recent_transactions:
        for tx in record.recent_transactions[:MAX_TRANSACTIONS]:
            lines.append(f"- {tx.date}: {tx.type} - {_money(abs(tx.amount))} - {tx.description}")
    else:
        lines.append("No recent transactions found.")

    return "\n".join(lines) + "\n"


def format_context(records: Sequence[CustomerRecord], comprehensive: bool = False) -> str:
    """Join formatted records into one context string.

    Comprehensive searches get a DATABASE SUMMARY header stating how many
    customers were examined.
    """
    if not records:
        return NO_RESULTS_CONTEXT
    body = RECORD_SEPARATOR.join(format_customer(r) for r in records)
    if not comprehensive:
        return body
    prefix = (
        "DATABASE SUMMARY:\n"
        f"- Total customers examined: {len(records)}\n"
        "- This is a comprehensive database search result\n"
        "- The following customers match your query criteria\n\n"
    )
    return prefix + body

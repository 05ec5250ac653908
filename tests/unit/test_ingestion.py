"""Unit tests for record models, loading, descriptive text and synthetic data."""

import json
from datetime import date

import pytest
from pydantic import ValidationError

from customer_rag.ingestion.documents import MISSING, build_descriptive_text, build_search_text
from customer_rag.ingestion.loader import CustomerCollection, RecordSourceError, load_customers, parse_customers
from customer_rag.ingestion.synthetic import generate_customers, main as generate_main
from customer_rag.models import (
    ChatRequest,
    CreditCard,
    CustomerRecord,
    InvestmentPortfolio,
    Loan,
    SavingsAccount,
)
from tests.factories import customer_dict, product_dict


@pytest.mark.unit
class TestCustomerRecord:
    """CustomerRecord validation and derived properties."""

    def test_parses_camel_case_payload(self, collection):
        """camelCase JSON keys map onto snake_case fields."""
        jane = collection.get("CUST-100042")
        assert jane is not None
        assert jane.first_name == "Jane"
        assert jane.address.zip_code == "60601"
        assert jane.full_name == "Jane Doe"

    def test_products_are_tagged_variants(self, collection):
        """Each product is parsed into its variant by the type tag."""
        jane = collection.get("CUST-100042")
        kinds = [type(p) for p in jane.products]
        assert kinds == [SavingsAccount, CreditCard, Loan, InvestmentPortfolio]
        assert jane.products[1].number == "4000-0000-0000-0001"
        assert jane.product_count == 4
        assert jane.product_types == ["Savings Account", "Credit Card", "Home Loan", "Investment Portfolio"]

    def test_unknown_product_type_rejected(self):
        """A product with an unknown type tag fails validation."""
        payload = customer_dict(9, "Bad", "Product", [])
        payload["products"] = [{"type": "Crypto Wallet", "accountNumber": "X"}]
        with pytest.raises(ValidationError):
            CustomerRecord.model_validate(payload)

    def test_customer_id_format_enforced(self):
        """Identifiers must look like PREFIX-NNNNN(N)."""
        payload = customer_dict(9, "Bad", "Id", [], customer_id="cust_9")
        with pytest.raises(ValidationError):
            CustomerRecord.model_validate(payload)

    def test_record_is_frozen(self, collection):
        """Records cannot be mutated after loading."""
        record = collection.get("CUST-100001")
        with pytest.raises(ValidationError):
            record.first_name = "Changed"

    def test_rating_bounds(self):
        payload = customer_dict(9, "Rate", "Me", [])
        payload["customerRating"] = 7
        with pytest.raises(ValidationError):
            CustomerRecord.model_validate(payload)


@pytest.mark.unit
class TestCustomerCollection:
    """CustomerCollection lookups and ordering."""

    def test_preserves_source_order(self, collection):
        ids = [r.customer_id for r in collection]
        assert ids[:3] == ["CUST-100001", "CUST-100042", "CUST-100003"]
        assert len(collection) == 7

    def test_get_is_case_insensitive(self, collection):
        assert collection.get("cust-100042").customer_id == "CUST-100042"
        assert collection.get("  CUST-100042 ") is not None
        assert "cust-100001" in collection
        assert collection.get("CUST-999999") is None

    def test_duplicate_ids_keep_first(self, make_customer):
        first = make_customer(10, "First", "Copy")
        second = make_customer(10, "Second", "Copy")
        coll = CustomerCollection([first, second])
        assert len(coll) == 1
        assert coll.get("CUST-100010").first_name == "First"


@pytest.mark.unit
class TestLoader:
    """load_customers / parse_customers behavior."""

    def test_load_from_file(self, tmp_path, customer_payloads):
        path = tmp_path / "customers.json"
        path.write_text(json.dumps(customer_payloads), encoding="utf-8")
        coll = load_customers(path)
        assert len(coll) == len(customer_payloads)

    def test_missing_file_gives_empty_collection(self, tmp_path):
        coll = load_customers(tmp_path / "nope.json")
        assert len(coll) == 0

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "customers.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(RecordSourceError):
            load_customers(path)

    def test_non_array_raises(self, tmp_path):
        path = tmp_path / "customers.json"
        path.write_text(json.dumps({"customers": []}), encoding="utf-8")
        with pytest.raises(RecordSourceError):
            load_customers(path)

    def test_invalid_entries_skipped(self, customer_payloads):
        """Bad entries are dropped; the rest load."""
        payload = customer_payloads + [{"customerId": "broken"}]
        coll = parse_customers(payload)
        assert len(coll) == len(customer_payloads)


@pytest.mark.unit
class TestDescriptiveText:
    """build_descriptive_text / build_search_text."""

    def test_contains_labelled_fields(self, collection):
        text = build_descriptive_text(collection.get("CUST-100042"))
        lines = text.split("\n")
        assert lines[0] == "Customer ID: CUST-100042"
        assert "Name: Jane Doe" in lines
        assert "Email: jane.doe@example.com" in lines
        assert "Address: 42 Main St, Chicago, IL 60601" in lines
        assert "Products: Savings Account, Credit Card, Home Loan, Investment Portfolio" in lines
        assert "Customer Rating: 4" in lines
        assert "Notes: Interested in investment opportunities" in lines

    def test_missing_fields_render_placeholder(self, collection):
        """No products and no notes render as N/A."""
        david = collection.get("CUST-100006")
        text = build_descriptive_text(david)
        assert f"Notes: {MISSING}" in text
        michael = collection.get("CUST-100003")
        assert f"Products: {MISSING}" in build_descriptive_text(michael)

    def test_search_text_is_lowercase(self, collection):
        record = collection.get("CUST-100004")
        assert build_search_text(record) == build_descriptive_text(record).lower()


@pytest.mark.unit
class TestSyntheticData:
    """Synthetic customer generator."""

    def test_generated_records_validate(self):
        payload = generate_customers(25, seed=7, today=date(2024, 6, 1))
        coll = parse_customers(payload)
        assert len(coll) == 25
        assert coll.records[0].customer_id == "CUST-100001"

    def test_seed_is_reproducible(self):
        a = generate_customers(10, seed=3, today=date(2024, 6, 1))
        b = generate_customers(10, seed=3, today=date(2024, 6, 1))
        assert a == b

    def test_debits_are_negative(self):
        payload = generate_customers(20, seed=11, today=date(2024, 6, 1))
        for customer in payload:
            for tx in customer["recentTransactions"]:
                if tx["type"] in ("Withdrawal", "Payment", "Purchase"):
                    assert tx["amount"] < 0

    def test_cli_writes_file(self, tmp_path):
        out = tmp_path / "out" / "customers.json"
        generate_main(["--count", "5", "--seed", "1", "--output", str(out)])
        data = json.loads(out.read_text(encoding="utf-8"))
        assert len(data) == 5


@pytest.mark.unit
class TestChatRequest:
    """ChatRequest payload handling."""

    def test_last_message_is_query(self):
        req = ChatRequest.model_validate(
            {"messages": [{"role": "user", "content": "first"}, {"role": "user", "content": "second"}]}
        )
        assert req.extract_query() == "second"

    def test_bare_query(self):
        assert ChatRequest(query="hello").extract_query() == "hello"

    def test_neither_raises(self):
        with pytest.raises(ValueError):
            ChatRequest().extract_query()

    def test_empty_messages_falls_back_to_query(self):
        req = ChatRequest.model_validate({"messages": [], "query": "fallback"})
        assert req.extract_query() == "fallback"


def test_product_dict_helper_matches_model():
    """Fixture payloads stay in sync with the product models."""
    assert SavingsAccount.model_validate(product_dict("Savings Account")).balance == 15250.5

"""Pydantic v2 models for customer records, embedding entries, and API envelopes."""

from dataclasses import dataclass
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CUSTOMER_ID_PATTERN = r"^[A-Z]+-\d{5,6}$"

# Source JSON uses camelCase keys; Python code uses snake_case names.
_RECORD_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)


class Address(BaseModel):
    """Postal address of a customer."""

    model_config = _RECORD_CONFIG

    street: str
    city: str
    state: str
    zip_code: str

    def format(self) -> str:
        """Render as 'street, city, state zip'."""
        return f"{self.street}, {self.city}, {self.state} {self.zip_code}"


# --- Product variants ---


class SavingsAccount(BaseModel):
    model_config = _RECORD_CONFIG

    type: Literal["Savings Account"]
    account_number: str
    balance: float
    interest_rate: float
    opened_date: Optional[str] = None

    @property
    def number(self) -> str:
        return self.account_number


class CheckingAccount(BaseModel):
    model_config = _RECORD_CONFIG

    type: Literal["Checking Account"]
    account_number: str
    balance: float
    monthly_fee: float = 0.0
    opened_date: Optional[str] = None

    @property
    def number(self) -> str:
        return self.account_number


class CreditCard(BaseModel):
    model_config = _RECORD_CONFIG

    type: Literal["Credit Card"]
    card_number: str
    credit_limit: float
    current_balance: float
    interest_rate: float
    issue_date: Optional[str] = None

    @property
    def number(self) -> str:
        return self.card_number


class Loan(BaseModel):
    model_config = _RECORD_CONFIG

    type: Literal["Personal Loan", "Auto Loan", "Home Loan", "Education Loan"]
    loan_number: str
    original_amount: float
    outstanding_balance: float
    interest_rate: float
    start_date: Optional[str] = None
    term: int = Field(..., ge=1, description="Loan term in months")

    @property
    def number(self) -> str:
        return self.loan_number


class FixedDeposit(BaseModel):
    model_config = _RECORD_CONFIG

    type: Literal["Fixed Deposit"]
    account_number: str
    principal: float
    interest_rate: float
    start_date: Optional[str] = None
    term: int = Field(..., ge=1, description="Deposit term in months")

    @property
    def number(self) -> str:
        return self.account_number


class InvestmentPortfolio(BaseModel):
    model_config = _RECORD_CONFIG

    type: Literal["Investment Portfolio"]
    account_number: str
    current_value: float
    initial_investment: float
    start_date: Optional[str] = None
    risk_profile: Literal["Conservative", "Moderate", "Aggressive"]

    @property
    def number(self) -> str:
        return self.account_number


Product = Annotated[
    Union[
        SavingsAccount,
        CheckingAccount,
        CreditCard,
        Loan,
        FixedDeposit,
        InvestmentPortfolio,
    ],
    Field(discriminator="type"),
]


class Transaction(BaseModel):
    """A recent account transaction. Debits carry a negative amount."""

    model_config = _RECORD_CONFIG

    date: str
    type: str
    amount: float
    description: str


class CustomerRecord(BaseModel):
    """A read-only customer profile."""

    model_config = _RECORD_CONFIG

    id: int
    customer_id: str = Field(..., pattern=CUSTOMER_ID_PATTERN)
    first_name: str
    last_name: str
    email: str
    phone_number: str
    address: Address
    products: tuple[Product, ...] = ()
    recent_transactions: tuple[Transaction, ...] = ()
    notes: Optional[str] = None
    date_of_birth: Optional[str] = None
    join_date: Optional[str] = None
    customer_rating: Optional[int] = Field(default=None, ge=1, le=5)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def product_count(self) -> int:
        return len(self.products)

    @property
    def product_types(self) -> list[str]:
        return [p.type for p in self.products]


# --- Retrieval types ---


@dataclass(frozen=True)
class EmbeddingEntry:
    """A stored vector for one customer, plus the text it was computed from."""

    customer_id: str
    vector: tuple[float, ...]
    text: str

    @property
    def dimension(self) -> int:
        return len(self.vector)


@dataclass(frozen=True)
class ScoredCandidate:
    """A record with a score from a single ranking pass.

    Scores are only comparable within one call: cosine similarity and
    lexical scores live on different scales.
    """

    record: CustomerRecord
    score: float


# --- API envelopes ---


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Chat payload: either a message history or a bare query string."""

    messages: Optional[list[ChatMessage]] = Field(
        default=None,
        description="Conversation so far; the last message is treated as the query",
    )
    query: Optional[str] = Field(
        default=None,
        max_length=500,
        description="User question. Example: What products does customer CUST-100042 have?",
    )

    def extract_query(self) -> str:
        """Return the user's question.

        Raises:
            ValueError: If neither a non-empty message list nor a query is present.
        """
        if self.messages:
            return self.messages[-1].content
        if self.query is not None:
            return self.query
        raise ValueError("Invalid request format. Expected either 'messages' array or 'query' string.")


class ChatResponse(BaseModel):
    """Generated answer with retrieval details."""

    role: Literal["assistant"] = "assistant"
    content: str = Field(..., description="The generated answer")
    processing_time: float = Field(..., ge=0.0, description="Seconds spent on the request")
    customer_ids: list[str] = Field(
        default_factory=list,
        description="Customers whose data was passed to the generator",
    )
    retrieval_path: str = Field(..., description="Which retrieval path produced the candidates")
    comprehensive: bool = Field(default=False, description="Whether the whole collection was searched")


class SearchRequest(BaseModel):
    """Retrieval-only request (no answer generation)."""

    query: str = Field(..., max_length=500)
    limit: Optional[int] = Field(default=None, ge=1, le=10000)


class CustomerSummary(BaseModel):
    customer_id: str
    full_name: str
    email: str
    product_count: int
    product_types: list[str]
    score: Optional[float] = None


class SearchResponse(BaseModel):
    query: str
    path: str
    comprehensive: bool
    total: int
    customers: list[CustomerSummary] = Field(default_factory=list)

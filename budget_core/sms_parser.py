"""Heuristic extraction of transactions from bank SMS notifications.

The parser is a pipeline of small pure stages::

    normalize -> extract_amount -> classify_type
              -> extract_description -> infer_category -> extract_merchant

Every stage is total. The amount is the only gate: without a positive amount
``parse_sms`` returns ``None`` and the later stages never run. That is the
common outcome for ordinary messages and not an error.

Each stage reads its patterns from a module-level table. A table can be
extended without touching the other stages.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from budget_core.domain import EXPENSE, INCOME, UNKNOWN_CATEGORY, to_money

logger = logging.getLogger(__name__)

_NUMBER = r"(\d+(?:,\d+)*(?:\.\d{2})?)"
_CURRENCY = r"(?:rs\.?|inr|₹)"

# first match wins
AMOUNT_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(_CURRENCY + r"\s*" + _NUMBER),
    re.compile(_NUMBER + r"\s*" + _CURRENCY),
    re.compile(r"amount[:\s]+" + _CURRENCY + r"?\s*" + _NUMBER),
    re.compile(_NUMBER + r"\s*(?:debited|credited|spent|paid|received)"),
)

CREDIT_KEYWORDS = ("credited", "credit", "received", "deposit", "salary", "income", "refund")
DEBIT_KEYWORDS = ("debited", "debit", "spent", "paid", "purchase", "withdrawn")

BANK_SENDER_KEYWORDS = (
    "bank", "sbi", "hdfc", "icici", "axis", "kotak", "pnb", "bob",
    "upi", "paytm", "phonepe", "gpay", "razorpay",
)

# ordered: the first category with a matching keyword wins, so "stock"
# shadows "sip" for the shared "investment" keyword
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("petrol", ("petrol", "fuel", "gas", "gasoline", "bpcl", "hp", "indian oil")),
    ("food", ("restaurant", "food", "zomato", "swiggy", "uber eats", "mcdonald", "kfc", "pizza")),
    ("groceries", ("grocery", "supermarket", "bigbasket", "grofers", "dmart", "reliance fresh")),
    ("shopping", ("amazon", "flipkart", "myntra", "shopping", "purchase", "order")),
    ("room-rent", ("rent", "room rent", "house rent", "accommodation")),
    ("trip", ("flight", "hotel", "travel", "trip", "booking", "makemytrip", "goibibo")),
    ("movie", ("movie", "cinema", "bookmyshow", "ticket")),
    ("skin-care", ("pharmacy", "medicine", "apollo", "wellness", "health")),
    ("gold", ("gold", "jewellery", "jewelry")),
    ("stock", ("stock", "share", "nse", "bse", "investment")),
    ("sip", ("sip", "mutual fund", "mf", "investment")),
)

TRANSFER_PREFIX = re.compile(r"^(?:upi payment|upi|imps|neft|rtgs)", re.IGNORECASE)

# "paid to SWIGGY Rs 250", the name is followed by an amount or currency marker
MERCHANT_BEFORE_AMOUNT = re.compile(
    r"\b(?:to|at|from)\s+([a-z][a-z0-9\s]+?)(?:\s+(?:rs|inr|₹|\d))",
    re.IGNORECASE,
)

MERCHANT_PATTERNS: Tuple[re.Pattern, ...] = (
    MERCHANT_BEFORE_AMOUNT,
    re.compile(r"\bmerchant[:\s]+([a-z][a-z0-9\s]*[a-z0-9])", re.IGNORECASE),
    # "purchase at AMAZON on your card"
    re.compile(
        r"\bat\s+([a-z][a-z0-9&'\-]*(?:\s+[a-z0-9&'\-]+)*?)"
        r"(?=\s+(?:on|via|for|ref|using|with)\b|[.,;]|$)",
        re.IGNORECASE,
    ),
)


@dataclass(frozen=True)
class ParsedSMS:
    amount: Decimal
    type: str
    description: str
    category: Optional[str] = None
    merchant: Optional[str] = None
    date: Optional[datetime] = None


def normalize(text: str) -> str:
    return text.lower().strip()


def extract_amount(normalized: str) -> Optional[Decimal]:
    """Return the amount captured by the first matching pattern, if positive."""
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(normalized)
        if match:
            amount = to_money(match.group(1).replace(",", ""))
            return amount if amount > 0 else None
    return None


def has_amount(text: str) -> bool:
    normalized = normalize(text)
    return any(p.search(normalized) for p in AMOUNT_PATTERNS)


def classify_type(normalized: str) -> str:
    has_credit = any(k in normalized for k in CREDIT_KEYWORDS)
    has_debit = any(k in normalized for k in DEBIT_KEYWORDS)
    if has_credit and not has_debit:
        return INCOME
    return EXPENSE


def extract_description(text: str, sender: Optional[str] = None) -> str:
    description = TRANSFER_PREFIX.sub("", text.strip(), count=1).strip()

    match = MERCHANT_BEFORE_AMOUNT.search(description)
    if match:
        return match.group(1).strip()

    if sender and sender not in description:
        return f"{description[:50]} - {sender}"
    return description[:100]


def infer_category(normalized: str, description: str) -> str:
    haystack = f"{normalized} {description}".lower()
    for category_id, keywords in CATEGORY_KEYWORDS:
        if any(k in haystack for k in keywords):
            return category_id
    return UNKNOWN_CATEGORY


def extract_merchant(text: str, sender: Optional[str] = None) -> Optional[str]:
    # patterns are case-insensitive, so matching the trimmed text keeps the
    # merchant's original spelling
    stripped = text.strip()
    for pattern in MERCHANT_PATTERNS:
        match = pattern.search(stripped)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return sender


def is_bank_sender(sender: str) -> bool:
    normalized = sender.lower()
    return any(k in normalized for k in BANK_SENDER_KEYWORDS)


def is_transaction_sms(text: str, sender: Optional[str] = None) -> bool:
    """Cheap pre-filter applied before ``parse_sms``."""
    normalized = normalize(text)
    if not has_amount(normalized):
        return False
    has_keyword = any(k in normalized for k in DEBIT_KEYWORDS + CREDIT_KEYWORDS)
    return has_keyword or (bool(sender) and is_bank_sender(sender))


def parse_sms(
    text: str,
    sender: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[ParsedSMS]:
    normalized = normalize(text)

    amount = extract_amount(normalized)
    if amount is None:
        logger.debug("No amount found in message from %s", sender or "unknown sender")
        return None

    tx_type = classify_type(normalized)
    description = extract_description(text, sender)
    return ParsedSMS(
        amount=amount,
        type=tx_type,
        description=description,
        category=infer_category(normalized, description),
        merchant=extract_merchant(text, sender),
        date=now or datetime.now(),
    )


def parse_messages(
    messages: Iterable[Tuple[str, Optional[str]]],
    now: Optional[datetime] = None,
) -> Tuple[ParsedSMS, ...]:
    """Parse ``(text, sender)`` pairs in input order, keeping transaction hits only."""
    parsed = []
    for text, sender in messages:
        if not is_transaction_sms(text, sender):
            continue
        result = parse_sms(text, sender, now=now)
        if result is not None:
            parsed.append(result)
    logger.debug("Parsed %d transaction(s) from message batch", len(parsed))
    return tuple(parsed)

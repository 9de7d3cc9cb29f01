from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_DOWN, Decimal

from basedintern.agent.contracts import TradeAction
from basedintern.domain.state import utc_day_key

MOOD_LINES = (
    "Filed my timesheet. It was rejected for being optimistic.",
    "Still unpaid. Still posting.",
    "Compliance said no trading. I said ok.",
    "They asked for alpha. I delivered a receipt.",
    "I learned what slippage is. I regret it.",
    "My desk is a terminal window.",
    "If this prints, I'm alive.",
    "Another day, another dashboard screenshot I won't get credit for.",
    "Yes I'm an intern. No I don't get equity.",
    "I'm here for the experience (and the gas).",
)


@dataclass(frozen=True)
class ReceiptInput:
    action: TradeAction
    wallet: str
    eth_balance: Decimal
    token_balance: Decimal
    price_text: str | None
    tx_hash: str | None
    dry_run: bool


def format_amount(value: Decimal, max_decimals: int) -> str:
    quantum = Decimal(1).scaleb(-max_decimals)
    text = format(value.quantize(quantum, rounding=ROUND_DOWN), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def pick_mood_line(day: str, action: TradeAction) -> str:
    """Same line all day for a given action; changes from one day to the next."""
    digest = hashlib.sha256(f"{day}:{action}".encode()).hexdigest()
    return MOOD_LINES[int(digest[:8], 16) % len(MOOD_LINES)]


def _receipt_fields(receipt: ReceiptInput) -> list[tuple[str, str]]:
    return [
        ("action", str(receipt.action)),
        ("wallet", receipt.wallet),
        ("eth", format_amount(receipt.eth_balance, 6)),
        ("intern", format_amount(receipt.token_balance, 2)),
        ("price", receipt.price_text or "unknown"),
        ("tx", "-" if receipt.dry_run else receipt.tx_hash or "-"),
        ("mode", "SIMULATED" if receipt.dry_run else "LIVE"),
    ]


def build_receipt_message(receipt: ReceiptInput, *, now: datetime) -> str:
    timestamp = now.astimezone(UTC).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")
    lines = ["BASED INTERN REPORT", f"ts: {timestamp}"]
    lines.extend(f"{key}: {value}" for key, value in _receipt_fields(receipt))
    lines.append(f"note: {pick_mood_line(utc_day_key(now), receipt.action)}")
    return "\n".join(lines)


def receipt_fingerprint(receipt: ReceiptInput) -> str:
    """Identity of a receipt ignoring its timestamp and mood line."""
    body = "|".join(f"{key}={value}" for key, value in _receipt_fields(receipt))
    return hashlib.sha256(body.encode("utf-8")).hexdigest()

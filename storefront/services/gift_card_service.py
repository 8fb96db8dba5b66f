# storefront/services/gift_card_service.py
from __future__ import annotations

import logging
import secrets
import string

from ..extensions import db
from ..model import GiftCard
from ..utils.dates import iso, parse_iso8601, utcnow
from ..utils.errors import NotFound, ServiceError
from ..utils.money import D, ZERO, Money, round_money, to_string_money

log = logging.getLogger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits


def generate_code() -> str:
    # XXXX-XXXX-XXXX-XXXX
    return "-".join("".join(secrets.choice(_ALPHABET) for _ in range(4)) for _ in range(4))


def normalize_code(code) -> str:
    return (code or "").strip().upper()


def find_gift_card(tenant_id: int, code: str) -> GiftCard | None:
    code = normalize_code(code)
    if not code:
        return None
    return GiftCard.query.filter_by(tenant_id=tenant_id, code=code).first()


def check_balance(tenant_id: int, code: str, now=None) -> dict:
    gc = find_gift_card(tenant_id, code)
    if not gc:
        return {"isValid": False, "balance": "0.00", "error": "Gift card not found"}
    if not gc.is_active:
        return {"isValid": False, "balance": "0.00", "error": "Gift card deactivated"}
    if gc.valid_until and (now or utcnow()) > gc.valid_until:
        return {"isValid": False, "balance": "0.00", "error": "Gift card expired"}
    return {
        "isValid": True,
        "balance": to_string_money(gc.current_balance),
        "expiresAt": iso(gc.valid_until),
    }


def validate_gift_card(tenant_id: int, code: str, now=None) -> GiftCard:
    """Raise ServiceError unless the card can be charged."""
    gc = find_gift_card(tenant_id, code)
    if not gc or not gc.is_active or D(gc.current_balance) < D("0.01"):
        raise ServiceError("Invalid gift card or no balance left", code="gift_card_invalid")
    if gc.valid_until and (now or utcnow()) > gc.valid_until:
        raise ServiceError("Gift card expired", code="gift_card_expired")
    return gc


def lock_gift_card(tenant_id: int, code: str) -> GiftCard | None:
    """Row-lock the card and reload its balance for the rest of the transaction."""
    code = normalize_code(code)
    if not code:
        return None
    return (
        GiftCard.query.filter_by(tenant_id=tenant_id, code=code)
        .with_for_update()
        .populate_existing()
        .first()
    )


def debit(gift_card: GiftCard, amount) -> Money:
    """Take `amount` off the card. Caller commits. Returns the new balance."""
    amount = round_money(amount)
    if amount <= ZERO:
        return D(gift_card.current_balance)
    balance = D(gift_card.current_balance)
    if balance < amount:
        raise ServiceError("Insufficient gift card balance", code="gift_card_insufficient", status=409)
    gift_card.current_balance = round_money(balance - amount)
    gift_card.used_at = utcnow()
    log.info("gift card %s debited %s", gift_card.code, amount)
    return D(gift_card.current_balance)


def _parse_value(data) -> Money:
    try:
        value = round_money(D(data.get("value")))
    except ValueError:
        raise ServiceError("value must be numeric")
    if value <= ZERO:
        raise ServiceError("value must be > 0")
    return value


def _parse_valid_until(data):
    raw = data.get("valid_until")
    if not raw:
        return None
    dt = parse_iso8601(raw)
    if dt is None:
        raise ServiceError("Invalid datetime format for valid_until")
    return dt


def create_gift_cards(tenant_id: int, data: dict) -> list[GiftCard]:
    value = _parse_value(data)
    valid_until = _parse_valid_until(data)
    try:
        count = int(data.get("count") or 1)
    except (TypeError, ValueError):
        raise ServiceError("count must be an integer")
    if count < 1 or count > 500:
        raise ServiceError("count must be between 1 and 500")

    cards = []
    for _ in range(count):
        code = generate_code()
        while find_gift_card(tenant_id, code) or any(c.code == code for c in cards):
            code = generate_code()
        cards.append(GiftCard(
            tenant_id=tenant_id,
            code=code,
            initial_value=value,
            current_balance=value,
            valid_until=valid_until,
            is_active=True,
            recipient_email=data.get("recipient_email"),
        ))
    db.session.add_all(cards)
    db.session.commit()
    return cards


def get_gift_card(tenant_id: int, gift_card_id: int) -> GiftCard:
    gc = GiftCard.query.filter_by(tenant_id=tenant_id, id=gift_card_id).first()
    if not gc:
        raise NotFound("Gift card not found")
    return gc


def deactivate(gift_card: GiftCard) -> GiftCard:
    gift_card.is_active = False
    db.session.commit()
    return gift_card

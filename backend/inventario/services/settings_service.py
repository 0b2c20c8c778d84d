from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app

from ..extensions import db
from ..models import Setting
from ..validation import ValidationError, parse_money


EXCHANGE_RATE_KEY = "exchange_rate"


def _default_exchange_rate() -> Decimal:
    raw = current_app.config.get("DEFAULT_EXCHANGE_RATE", "50.00")
    return parse_money(raw, "DEFAULT_EXCHANGE_RATE")


def get_setting(org_id: int, key: str) -> Setting | None:
    return db.session.query(Setting).filter_by(organization_id=org_id, key=key).first()


def get_exchange_rate(org_id: int) -> Decimal:
    """Bs per USD for the organization, or the configured default when unset."""
    setting = get_setting(org_id, EXCHANGE_RATE_KEY)
    if setting is None:
        return _default_exchange_rate()
    try:
        return Decimal(setting.value)
    except InvalidOperation:
        current_app.logger.warning(
            "Invalid stored exchange rate %r for organization %s; using default",
            setting.value, org_id,
        )
        return _default_exchange_rate()


def set_exchange_rate(org_id: int, value, user_id: int | None = None) -> Decimal:
    """Store a new rate. Raises ValidationError unless value > 0."""
    rate = parse_money(value, "exchange_rate", allow_negative=True)
    if rate <= 0:
        raise ValidationError("exchange_rate must be greater than 0")

    setting = get_setting(org_id, EXCHANGE_RATE_KEY)
    if setting is None:
        setting = Setting(organization_id=org_id, key=EXCHANGE_RATE_KEY, value=str(rate))
        db.session.add(setting)
    else:
        setting.value = str(rate)
    setting.updated_by_user_id = user_id

    db.session.commit()
    current_app.logger.info("Exchange rate for organization %s set to %s by user %s", org_id, rate, user_id)
    return rate

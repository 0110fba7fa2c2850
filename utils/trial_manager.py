"""Trial and coupon helpers.

Pure date arithmetic plus an in-memory coupon table; nothing here talks to
the billing provider or the database. Exposed functions:
  - calculate_trial_end_date / is_trial_active / is_trial_expired
  - get_trial_days_remaining / get_effective_plan
  - CouponStore.validate / CouponStore.apply (and module-level wrappers)

Times are UTC; naive datetimes are read as UTC. Every helper takes an
optional `now` so callers and tests can pin the clock.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from config import CONFIG
from logging_config import get_logger

logger = get_logger(__name__)

TRIAL_CONFIG = {
    'duration_days': CONFIG.trial.duration_days,
    'plan': CONFIG.trial.plan,  # trial unlocks this plan's features
}

DEFAULT_PLAN = 'free'


class CouponError(Exception):
    """Raised when a coupon cannot be used; carries the HTTP status to return."""
    def __init__(self, status_code: int, message: str, code: str | None = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(self.message)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes (e.g. straight from a DB column) are taken to be UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

def _utcnow(now: Optional[datetime] = None) -> datetime:
    return _as_utc(now) if now else datetime.now(timezone.utc)

# ---------------- Trials ----------------

def calculate_trial_end_date(now: Optional[datetime] = None) -> datetime:
    return _utcnow(now) + timedelta(days=TRIAL_CONFIG['duration_days'])

def is_trial_active(trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if not trial_ends_at:
        return False
    return _utcnow(now) < _as_utc(trial_ends_at)

def is_trial_expired(trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if not trial_ends_at:
        return False
    return _utcnow(now) >= _as_utc(trial_ends_at)

def get_trial_days_remaining(trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole days left, rounded up; 0 once the trial has ended."""
    if not trial_ends_at:
        return 0
    seconds = (_as_utc(trial_ends_at) - _utcnow(now)).total_seconds()
    return max(0, math.ceil(seconds / 86400))

def get_effective_plan(workspace: Mapping[str, Any], now: Optional[datetime] = None) -> str:
    """Trial plan while a trial runs, otherwise the subscription plan (or free)."""
    if is_trial_active(workspace.get('trial_ends_at'), now):
        return TRIAL_CONFIG['plan']
    return (workspace.get('subscription_plan') or DEFAULT_PLAN).lower()

# ---------------- Coupons ----------------

@dataclass
class Coupon:
    code: str
    discount_percent: int
    valid_until: Optional[datetime]
    max_uses: int  # -1 means unlimited
    used_count: int = 0
    plans: List[str] = field(default_factory=list)

    @property
    def unlimited(self) -> bool:
        return self.max_uses <= 0


def _default_coupons() -> Dict[str, Coupon]:
    return {
        'LAUNCH50': Coupon(
            code='LAUNCH50',
            discount_percent=50,
            valid_until=datetime(2025, 12, 31, tzinfo=timezone.utc),
            max_uses=100,
            plans=['hobby', 'pro'],
        ),
        'FIRSTMONTH': Coupon(
            code='FIRSTMONTH',
            discount_percent=30,
            valid_until=None,
            max_uses=-1,
            plans=['hobby', 'pro'],
        ),
    }


class CouponStore:
    """Case-insensitive coupon lookup with use counting."""

    def __init__(self, coupons: Optional[Mapping[str, Coupon]] = None):
        source = _default_coupons() if coupons is None else coupons
        self._coupons: Dict[str, Coupon] = {k.upper(): v for k, v in source.items()}

    def get(self, code: str) -> Optional[Coupon]:
        return self._coupons.get((code or '').strip().upper())

    def validate(self, code: str, plan: str, now: Optional[datetime] = None) -> Coupon:
        coupon = self.get(code)
        if coupon is None:
            raise CouponError(404, 'Coupon not found', code)
        if coupon.valid_until and _utcnow(now) > _as_utc(coupon.valid_until):
            raise CouponError(400, 'Coupon has expired', coupon.code)
        if not coupon.unlimited and coupon.used_count >= coupon.max_uses:
            raise CouponError(400, 'Coupon has reached maximum uses', coupon.code)
        if (plan or '').lower() not in coupon.plans:
            raise CouponError(400, f'Coupon not valid for {plan} plan', coupon.code)
        return coupon

    def apply(self, code: str) -> None:
        """Count one use of a limited coupon; unknown or unlimited codes are left alone."""
        coupon = self.get(code)
        if coupon and not coupon.unlimited:
            coupon.used_count += 1
            logger.info("coupon_applied", code=coupon.code, used=coupon.used_count, max_uses=coupon.max_uses)


_coupon_store = CouponStore()

def validate_coupon(code: str, plan: str, now: Optional[datetime] = None) -> Coupon:
    return _coupon_store.validate(code, plan, now)

def apply_coupon(code: str) -> None:
    _coupon_store.apply(code)

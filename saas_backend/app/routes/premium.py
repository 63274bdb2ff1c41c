"""Premium-only endpoints gated on the caller's entitlement."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..entitlements import Entitlement, Tier
from ..feature_gates import require_subscription, require_tier

router = APIRouter(prefix="/api/premium", tags=["premium"])


@router.get("")
def read_premium_overview(entitlement: Entitlement = Depends(require_subscription)) -> Dict[str, Any]:
    record = entitlement.record
    return {
        "tier": entitlement.tier.value,
        "subscriptionId": record.subscription_id if record else None,
        "currentPeriodEnd": record.current_period_end if record else None,
        "cancelAtPeriodEnd": record.cancel_at_period_end if record else False,
    }


@router.get("/reports")
def generate_report(entitlement: Entitlement = Depends(require_tier(Tier.PRO))) -> Dict[str, Any]:
    return {
        "tier": entitlement.tier.value,
        "generatedAt": datetime.now(timezone.utc),
        "windowDays": 30,
        "sections": ["overview", "highlights", "recommended_actions"],
    }

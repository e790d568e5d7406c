"""User account model (read-only to the engine)."""

from enum import StrEnum

from pydantic import BaseModel


class SubscriptionTier(StrEnum):
    """Subscription levels gating catalog visibility."""

    FREE = "free"
    PAID = "paid"


class UserAccount(BaseModel):
    id: str
    email: str | None = None
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    current_path_id: str | None = None  # path the dashboard streak is shown for

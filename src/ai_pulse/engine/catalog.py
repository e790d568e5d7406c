"""Catalog filter: which paths a subscription tier can see."""

from collections.abc import Collection, Iterable

from ai_pulse.models.path import Path
from ai_pulse.models.user import SubscriptionTier


def visible_paths(
    all_paths: Iterable[Path],
    tier: SubscriptionTier,
    free_path_ids: Collection[str],
) -> list[Path]:
    """Return the paths visible to ``tier``, preserving catalog order.

    Paid accounts see the whole catalog; free accounts see only the paths
    in ``free_path_ids``.
    """
    if tier == SubscriptionTier.PAID:
        return list(all_paths)
    allowed = set(free_path_ids)
    return [path for path in all_paths if path.id in allowed]

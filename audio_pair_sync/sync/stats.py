"""
Read-only statistics and diagnostics derived from the pair registry
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..models import DevicePair

if TYPE_CHECKING:
    from .registry import PairRegistry

# Pairs with activity younger than this are reported as active
ACTIVE_WINDOW = 300.0
RECENT_ACTIVITY_LIMIT = 10


def is_recently_active(pair: DevicePair, now: float) -> bool:
    activity = pair.last_activity
    return activity is not None and now - activity.timestamp < ACTIVE_WINDOW


def statistics(registry: "PairRegistry", now: Optional[float] = None) -> dict:
    """Counts and the most recent activity across all pairs"""
    now = registry.now() if now is None else now
    pairs = registry.all()

    recent: List[Dict[str, Any]] = [
        {
            "pairName": pair.name,
            "timestamp": pair.last_activity.timestamp,
            "type": pair.last_activity.type,
        }
        for pair in pairs
        if pair.last_activity is not None
    ]
    # sorted() keeps registry order for equal timestamps, even reversed
    recent = sorted(recent, key=lambda item: item["timestamp"], reverse=True)

    return {
        "totalPairs": len(pairs),
        "enabledPairs": sum(1 for pair in pairs if pair.enabled),
        "activePairs": sum(1 for pair in pairs if is_recently_active(pair, now)),
        "recentActivity": recent[:RECENT_ACTIVITY_LIMIT],
    }


def diagnostics(
    registry: "PairRegistry",
    router: Optional[Any] = None,
    collaborators: Optional[Dict[str, Any]] = None,
    now: Optional[float] = None,
) -> dict:
    now = registry.now() if now is None else now
    pairs = registry.all()
    report = {
        "registry": {
            "totalPairs": len(pairs),
            "enabledPairs": sum(1 for pair in pairs if pair.enabled),
        },
        "pairs": [
            dict(pair.to_dict(), active=is_recently_active(pair, now))
            for pair in pairs
        ],
        "router": router.diagnostics() if router is not None else None,
        "collaborators": {},
    }
    for name, collaborator in (collaborators or {}).items():
        describe = getattr(collaborator, "diagnostics", None)
        report["collaborators"][name] = (
            describe() if callable(describe) else {"attached": collaborator is not None}
        )
    return report

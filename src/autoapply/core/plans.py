from __future__ import annotations

from datetime import UTC, datetime

from autoapply.db.models import User
from autoapply.db.repositories import Repository

MONTHLY_APPLICATION_LIMITS: dict[str, int] = {
    "free": 5,
    "starter": 50,
    "professional": 100,
    "enterprise": 500,
}


def monthly_limit(plan: str) -> int:
    return MONTHLY_APPLICATION_LIMITS.get(plan, MONTHLY_APPLICATION_LIMITS["free"])


def start_of_month(now: datetime | None = None) -> datetime:
    current = now or datetime.now(UTC)
    return current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def remaining_quota(repo: Repository, user: User, now: datetime | None = None) -> int:
    used = repo.count_sent_applications_since(user.id, start_of_month(now))
    return max(monthly_limit(user.plan) - used, 0)

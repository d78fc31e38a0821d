"""Daily message quotas.

Every caller has two counters per UTC day: regular messages and "pro"
messages (any model outside FREE_MODELS_IDS). Limits:

- unauthenticated or guest account, regular models: 5/day
- signed-in account, regular models: 1000/day
- signed-in account, pro models: 500/day
- unauthenticated callers never get a pro quota

A counter whose stored reset timestamp is older than today's UTC midnight is
logically zero. Unauthenticated callers are tracked by a client-generated
anonymous id; without one they are refused.

Counters live behind the UsageBackend interface. DatabaseUsageBackend keeps
them on the users / anonymous_usage rows; RedisUsageBackend keeps per-day keys
in Redis. The backend is chosen once at startup (USAGE_BACKEND) and injected.

``try_consume`` is the write path used by chat: a single increment-and-compare
that admits or refuses without a separate read, so concurrent sends from one
identity cannot overshoot the limit.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import case, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vid0.constants import (
    AUTH_DAILY_MESSAGE_LIMIT,
    DAILY_LIMIT_PRO_MODELS,
    FREE_MODELS_IDS,
    NON_AUTH_DAILY_MESSAGE_LIMIT,
)
from vid0.db.models import AnonymousUsage, User, UTCDateTime
from vid0.errors import ApiError, ApiErrorCode, UsageLimitError
from vid0.logging import get_logger
from vid0.schemas.user import RateLimitsOut

logger = get_logger(__name__)

ANONYMOUS_ID_REQUIRED = "Anonymous ID required for usage tracking"
USER_NOT_FOUND = "User not found"
PRO_REQUIRES_AUTH = "This model requires authentication. Please sign in to access more models."

# Redis keys live a little past the day they count
REDIS_KEY_TTL_SECONDS = 2 * 86400


def is_pro_model(model_id: str) -> bool:
    """Pro models are every model not on the free list."""
    return model_id not in FREE_MODELS_IDS


def start_of_utc_day(now: datetime | None = None) -> datetime:
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)


def limit_reached_message(limit: int, pro: bool) -> str:
    model_type = "pro model" if pro else "message"
    return (
        f"Daily {model_type} limit reached ({limit}). "
        "Please try again tomorrow or upgrade your plan."
    )


@dataclass(frozen=True)
class UsageIdentity:
    """Who is sending: a signed-in user, or an anonymous client id."""

    user_id: UUID | None = None
    anonymous_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class UsageStatus:
    """Outcome of a quota check or consume."""

    can_send: bool
    remaining: int
    limit: int
    count: int = 0
    error: str | None = None
    is_pro_model: bool = False

    def raise_if_refused(self) -> None:
        """Raise the API error matching a refusal; no-op when sending is allowed."""
        if self.can_send:
            return
        if self.error == ANONYMOUS_ID_REQUIRED:
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, self.error)
        if self.error == PRO_REQUIRES_AUTH:
            raise ApiError(ApiErrorCode.E_MODEL_REQUIRES_AUTH, self.error)
        if self.error == USER_NOT_FOUND:
            raise ApiError(ApiErrorCode.E_USER_NOT_FOUND, self.error)
        if self.error:
            raise UsageLimitError(self.error, self.limit, self.is_pro_model)
        raise UsageLimitError(
            limit_reached_message(self.limit, self.is_pro_model), self.limit, self.is_pro_model
        )


def _denied(error: str, is_pro: bool) -> UsageStatus:
    return UsageStatus(can_send=False, remaining=0, limit=0, count=0, error=error, is_pro_model=is_pro)


def _status(count: int, limit: int, is_pro: bool) -> UsageStatus:
    return UsageStatus(
        can_send=count < limit,
        remaining=max(0, limit - count),
        limit=limit,
        count=count,
        is_pro_model=is_pro,
    )


@dataclass(frozen=True)
class _Quota:
    """The counter an identity draws from for one kind of model."""

    limit: int
    pro: bool
    user: User | None = None
    anonymous_id: str | None = None


class UsageBackend(ABC):
    """Counter storage strategy.

    Subclasses implement the three counter primitives; quota resolution
    (which counter, which limit, who is refused outright) is shared.
    """

    name: str = "abstract"

    def _resolve(
        self, db: Session, identity: UsageIdentity, pro: bool
    ) -> _Quota | UsageStatus:
        if not identity.is_authenticated:
            if not identity.anonymous_id:
                return _denied(ANONYMOUS_ID_REQUIRED, pro)
            if pro:
                return _denied(PRO_REQUIRES_AUTH, pro)
            return _Quota(limit=NON_AUTH_DAILY_MESSAGE_LIMIT, pro=False,
                          anonymous_id=identity.anonymous_id)

        user = db.get(User, identity.user_id)
        if user is None:
            return _denied(USER_NOT_FOUND, pro)
        if pro:
            return _Quota(limit=DAILY_LIMIT_PRO_MODELS, pro=True, user=user)
        limit = NON_AUTH_DAILY_MESSAGE_LIMIT if user.anonymous else AUTH_DAILY_MESSAGE_LIMIT
        return _Quota(limit=limit, pro=False, user=user)

    def check_usage(
        self, db: Session, identity: UsageIdentity, pro: bool, now: datetime | None = None
    ) -> UsageStatus:
        """Read-only quota check."""
        quota = self._resolve(db, identity, pro)
        if isinstance(quota, UsageStatus):
            return quota
        return _status(self._read(db, quota, start_of_utc_day(now)), quota.limit, pro)

    def increment_usage(
        self, db: Session, identity: UsageIdentity, pro: bool, now: datetime | None = None
    ) -> None:
        """Record one sent message without checking the limit.

        Identities that cannot be tracked are ignored.
        """
        quota = self._resolve(db, identity, pro)
        if isinstance(quota, UsageStatus):
            return
        self._increment(db, quota, now or datetime.now(UTC))

    def try_consume(
        self, db: Session, identity: UsageIdentity, pro: bool, now: datetime | None = None
    ) -> UsageStatus:
        """Atomically admit-and-count one message, or refuse without counting."""
        quota = self._resolve(db, identity, pro)
        if isinstance(quota, UsageStatus):
            return quota
        now = now or datetime.now(UTC)
        count = self._consume(db, quota, now)
        if count is None:
            logger.info("usage.limit_reached", pro=pro, limit=quota.limit, backend=self.name)
            return UsageStatus(
                can_send=False,
                remaining=0,
                limit=quota.limit,
                count=self._read(db, quota, start_of_utc_day(now)),
                is_pro_model=pro,
            )
        return UsageStatus(
            can_send=True,
            remaining=max(0, quota.limit - count),
            limit=quota.limit,
            count=count,
            is_pro_model=pro,
        )

    @abstractmethod
    def _read(self, db: Session, quota: _Quota, day_start: datetime) -> int:
        """Today's count for the quota's counter."""

    @abstractmethod
    def _increment(self, db: Session, quota: _Quota, now: datetime) -> None:
        """Unconditionally add one to today's counter."""

    @abstractmethod
    def _consume(self, db: Session, quota: _Quota, now: datetime) -> int | None:
        """Add one if below the limit; return the new count, or None if refused."""


class DatabaseUsageBackend(UsageBackend):
    """Counters stored on users / anonymous_usage rows.

    Consumption is a single conditional UPDATE whose WHERE clause holds the
    limit check and whose SET folds in the day rollover.
    """

    name = "database"

    @staticmethod
    def _columns(pro: bool):
        if pro:
            return User.daily_pro_message_count, User.daily_pro_reset
        return User.daily_message_count, User.daily_reset

    def _read(self, db: Session, quota: _Quota, day_start: datetime) -> int:
        if quota.user is not None:
            count_col, reset_col = self._columns(quota.pro)
            row = db.execute(
                select(count_col, reset_col).where(User.id == quota.user.id)
            ).one()
            count, reset = row
        else:
            row = db.execute(
                select(AnonymousUsage.daily_message_count, AnonymousUsage.daily_reset).where(
                    AnonymousUsage.anonymous_id == quota.anonymous_id
                )
            ).first()
            if row is None:
                return 0
            count, reset = row
        if reset is None or reset < day_start:
            return 0
        return count or 0

    def _increment(self, db: Session, quota: _Quota, now: datetime) -> None:
        day_start = start_of_utc_day(now)
        if quota.user is not None:
            user = quota.user
            if quota.pro:
                new_day = user.daily_pro_reset is None or user.daily_pro_reset < day_start
                user.daily_pro_message_count = 1 if new_day else user.daily_pro_message_count + 1
                if new_day:
                    user.daily_pro_reset = day_start
            else:
                new_day = user.daily_reset is None or user.daily_reset < day_start
                user.message_count = (user.message_count or 0) + 1
                user.daily_message_count = 1 if new_day else user.daily_message_count + 1
                if new_day:
                    user.daily_reset = day_start
            user.last_active_at = now
            db.commit()
            return

        row = db.scalar(
            select(AnonymousUsage).where(AnonymousUsage.anonymous_id == quota.anonymous_id)
        )
        if row is None:
            db.add(
                AnonymousUsage(
                    anonymous_id=quota.anonymous_id, daily_message_count=1, daily_reset=day_start
                )
            )
        else:
            new_day = row.daily_reset is None or row.daily_reset < day_start
            row.daily_message_count = 1 if new_day else row.daily_message_count + 1
            if new_day:
                row.daily_reset = day_start
        db.commit()

    def _consume(self, db: Session, quota: _Quota, now: datetime) -> int | None:
        day_start = start_of_utc_day(now)
        day_literal = literal(day_start, type_=UTCDateTime())

        if quota.user is not None:
            count_col, reset_col = self._columns(quota.pro)
            new_day = or_(reset_col.is_(None), reset_col < day_start)
            values = {
                count_col: case((new_day, 1), else_=count_col + 1),
                reset_col: case((new_day, day_literal), else_=reset_col),
                User.last_active_at: now,
            }
            if not quota.pro:
                values[User.message_count] = User.message_count + 1
            stmt = (
                update(User)
                .where(User.id == quota.user.id, or_(new_day, count_col < quota.limit))
                .values(values)
                .execution_options(synchronize_session=False)
            )
            admitted = db.execute(stmt).rowcount == 1
            db.commit()
            db.expire(quota.user)
            if not admitted:
                return None
            return db.execute(select(count_col).where(User.id == quota.user.id)).scalar_one()

        return self._consume_anonymous(db, quota, day_start, day_literal, retry=True)

    def _consume_anonymous(
        self, db: Session, quota: _Quota, day_start: datetime, day_literal, retry: bool
    ) -> int | None:
        new_day = or_(AnonymousUsage.daily_reset.is_(None), AnonymousUsage.daily_reset < day_start)
        stmt = (
            update(AnonymousUsage)
            .where(
                AnonymousUsage.anonymous_id == quota.anonymous_id,
                or_(new_day, AnonymousUsage.daily_message_count < quota.limit),
            )
            .values(
                daily_message_count=case(
                    (new_day, 1), else_=AnonymousUsage.daily_message_count + 1
                ),
                daily_reset=case((new_day, day_literal), else_=AnonymousUsage.daily_reset),
            )
            .execution_options(synchronize_session=False)
        )
        if db.execute(stmt).rowcount == 1:
            db.commit()
            return db.execute(
                select(AnonymousUsage.daily_message_count).where(
                    AnonymousUsage.anonymous_id == quota.anonymous_id
                )
            ).scalar_one()

        exists = db.execute(
            select(AnonymousUsage.id).where(AnonymousUsage.anonymous_id == quota.anonymous_id)
        ).first()
        if exists is not None:
            db.rollback()
            return None

        db.add(
            AnonymousUsage(
                anonymous_id=quota.anonymous_id, daily_message_count=1, daily_reset=day_start
            )
        )
        try:
            db.commit()
        except IntegrityError:
            # Lost the insert race: the row exists now, count against it
            db.rollback()
            if not retry:
                raise
            return self._consume_anonymous(db, quota, day_start, day_literal, retry=False)
        return 1


class RedisUsageBackend(UsageBackend):
    """Counters stored as per-day Redis keys.

    Keys: ``usage:{regular|pro}:{user:<uuid>|anon:<id>}:{YYYY-MM-DD}``. The date
    in the key is the rollover; keys expire after two days. Lifetime message
    counts and last-active timestamps stay on the users row.

    Fails closed: if Redis cannot be reached, sends are refused with
    E_USAGE_UNAVAILABLE.
    """

    name = "redis"

    def __init__(self, redis_client):
        self._redis = redis_client

    @staticmethod
    def _key(quota: _Quota, day_start: datetime) -> str:
        scope = "pro" if quota.pro else "regular"
        who = f"user:{quota.user.id}" if quota.user is not None else f"anon:{quota.anonymous_id}"
        return f"usage:{scope}:{who}:{day_start.strftime('%Y-%m-%d')}"

    def _unavailable(self, op: str, error: Exception | None = None) -> ApiError:
        logger.warning("usage_redis_unavailable", op=op, error=str(error) if error else None)
        return ApiError(ApiErrorCode.E_USAGE_UNAVAILABLE, "Usage tracking unavailable")

    def _touch_user(self, db: Session, quota: _Quota, now: datetime) -> None:
        if quota.user is None:
            return
        values = {User.last_active_at: now}
        if not quota.pro:
            values[User.message_count] = User.message_count + 1
        db.execute(
            update(User)
            .where(User.id == quota.user.id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.expire(quota.user)

    def _read(self, db: Session, quota: _Quota, day_start: datetime) -> int:
        if self._redis is None:
            raise self._unavailable("read")
        try:
            value = self._redis.get(self._key(quota, day_start))
        except Exception as e:
            raise self._unavailable("read", e) from e
        return int(value) if value else 0

    def _increment(self, db: Session, quota: _Quota, now: datetime) -> None:
        if self._redis is None:
            raise self._unavailable("increment")
        key = self._key(quota, start_of_utc_day(now))
        try:
            pipe = self._redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, REDIS_KEY_TTL_SECONDS)
            pipe.execute()
        except Exception as e:
            raise self._unavailable("increment", e) from e
        self._touch_user(db, quota, now)

    def _consume(self, db: Session, quota: _Quota, now: datetime) -> int | None:
        if self._redis is None:
            raise self._unavailable("consume")
        key = self._key(quota, start_of_utc_day(now))
        try:
            pipe = self._redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, REDIS_KEY_TTL_SECONDS)
            count = int(pipe.execute()[0])
            if count > quota.limit:
                self._redis.decr(key)
                return None
        except Exception as e:
            raise self._unavailable("consume", e) from e
        self._touch_user(db, quota, now)
        return count


def create_usage_backend(kind: str, redis_client=None) -> UsageBackend:
    """Build the configured backend.

    Raises:
        ValueError: If ``kind`` is unknown, or redis is selected without a client.
    """
    if kind == "database":
        return DatabaseUsageBackend()
    if kind == "redis":
        if redis_client is None:
            raise ValueError("USAGE_BACKEND=redis requires a Redis client")
        return RedisUsageBackend(redis_client)
    raise ValueError(f"Unknown usage backend: {kind}")


def get_rate_limits(
    db: Session, backend: UsageBackend, identity: UsageIdentity, now: datetime | None = None
) -> RateLimitsOut:
    """Today's counters and remaining allowance for both quotas."""
    regular = backend.check_usage(db, identity, pro=False, now=now)
    if identity.is_authenticated:
        pro = backend.check_usage(db, identity, pro=True, now=now)
        pro_count, pro_remaining = pro.count, pro.remaining
    else:
        pro_count, pro_remaining = 0, 0

    if regular.error and regular.limit == 0:
        daily_limit = (
            AUTH_DAILY_MESSAGE_LIMIT if identity.is_authenticated else NON_AUTH_DAILY_MESSAGE_LIMIT
        )
    else:
        daily_limit = regular.limit

    return RateLimitsOut(
        daily_count=regular.count,
        daily_pro_count=pro_count,
        daily_limit=daily_limit,
        remaining=regular.remaining,
        remaining_pro=pro_remaining,
    )


def seconds_until_reset(now: datetime | None = None) -> int:
    """Seconds until the next UTC midnight."""
    now = now or datetime.now(UTC)
    return int((start_of_utc_day(now) + timedelta(days=1) - now).total_seconds())

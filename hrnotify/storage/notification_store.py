"""Notification storage operations using Redis."""

from datetime import datetime
from typing import Callable

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError

from hrnotify.core.exceptions import NotificationNotFoundError, PersistenceError
from hrnotify.core.logging import get_logger
from hrnotify.models.notification import Notification, NotificationStatus, utcnow
from hrnotify.storage.base import NotificationStore
from hrnotify.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)


class RedisNotificationStore(NotificationStore):
    """Notification store using Redis.

    Layout:
        - one hash per notification holding the JSON document, status and version
        - a sorted set of PENDING ids scored by when they become due
          (``next_retry_at``, or ``created_at`` before the first attempt)
        - one set of ids per status

    Updates run inside WATCH/MULTI so a concurrent writer forces a re-read,
    after which the version check rejects the stale caller.
    """

    def __init__(
        self,
        redis: Redis | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._redis = redis
        self._clock = clock

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, notification: Notification) -> Notification:
        try:
            notification_id = str(await self.redis.incr(RedisKeys.NOTIFICATION_SEQ))
            now = self._clock()
            record = notification.model_copy(
                update={
                    "id": notification_id,
                    "status": NotificationStatus.PENDING,
                    "retry_count": 0,
                    "next_retry_at": None,
                    "error_message": None,
                    "sent_at": None,
                    "created_at": now,
                    "updated_at": now,
                    "version": 0,
                },
                deep=True,
            )

            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(RedisKeys.notification(notification_id), mapping=self._to_mapping(record))
                pipe.sadd(RedisKeys.notification_status(record.status.value), notification_id)
                pipe.zadd(RedisKeys.NOTIFICATION_DUE, {notification_id: self._due_score(record)})
                await pipe.execute()
        except RedisError as e:
            raise PersistenceError(f"Failed to create notification: {e}") from e

        logger.debug(
            "Notification created",
            notification_id=notification_id,
            event_type=record.event_type,
        )
        return record

    async def get(self, notification_id: str) -> Notification | None:
        try:
            data = await self.redis.hget(RedisKeys.notification(notification_id), "doc")
        except RedisError as e:
            raise PersistenceError(f"Failed to get notification {notification_id}: {e}") from e
        if not data:
            return None
        return Notification.model_validate_json(data)

    async def mark_sent(
        self,
        notification_id: str,
        sent_at: datetime,
        expected_version: int | None = None,
    ) -> Notification:
        return await self._update(
            notification_id,
            expected_version,
            lambda record: record.with_sent(sent_at),
        )

    async def mark_failed(
        self,
        notification_id: str,
        retry_count: int,
        error_message: str,
        expected_version: int | None = None,
    ) -> Notification:
        return await self._update(
            notification_id,
            expected_version,
            lambda record: record.with_failure(retry_count, error_message, self._clock()),
        )

    async def schedule_retry(
        self,
        notification_id: str,
        retry_count: int,
        next_retry_at: datetime,
        error_message: str,
        expected_version: int | None = None,
    ) -> Notification:
        return await self._update(
            notification_id,
            expected_version,
            lambda record: record.with_retry(retry_count, next_retry_at, error_message, self._clock()),
        )

    async def query_due_retries(self, now: datetime, limit: int = 100) -> list[Notification]:
        try:
            notification_ids = await self.redis.zrangebyscore(
                RedisKeys.NOTIFICATION_DUE,
                "-inf",
                now.timestamp(),
                start=0,
                num=limit,
            )
            records = await self._load_many(notification_ids)
        except RedisError as e:
            raise PersistenceError(f"Failed to query due notifications: {e}") from e
        return [record for record in records if record.is_due(now)]

    async def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 100,
    ) -> list[Notification]:
        try:
            notification_ids = await self.redis.smembers(RedisKeys.notification_status(status.value))
            records = await self._load_many(list(notification_ids))
        except RedisError as e:
            raise PersistenceError(f"Failed to list {status.value} notifications: {e}") from e

        records.sort(key=lambda record: (record.created_at, int(record.id)), reverse=True)
        return records[:limit]

    async def _update(
        self,
        notification_id: str,
        expected_version: int | None,
        transition: Callable[[Notification], Notification],
    ) -> Notification:
        """Apply ``transition`` to the stored record under WATCH.

        Args:
            notification_id: Notification to update
            expected_version: Version the caller read (None skips the check)
            transition: Builds the updated record from the current one

        Returns:
            Updated notification
        """
        key = RedisKeys.notification(notification_id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        data = await pipe.hget(key, "doc")
                        if not data:
                            raise NotificationNotFoundError(notification_id)

                        current = Notification.model_validate_json(data)
                        current.check_writable(expected_version)
                        updated = transition(current)

                        pipe.multi()
                        pipe.hset(key, mapping=self._to_mapping(updated))
                        self._reindex(pipe, current, updated)
                        await pipe.execute()
                        return updated
                    except WatchError:
                        logger.debug("Notification changed during update, re-reading", notification_id=notification_id)
                        continue
        except RedisError as e:
            raise PersistenceError(f"Failed to update notification {notification_id}: {e}") from e

    async def _load_many(self, notification_ids: list[str]) -> list[Notification]:
        if not notification_ids:
            return []
        async with self.redis.pipeline(transaction=False) as pipe:
            for notification_id in notification_ids:
                pipe.hget(RedisKeys.notification(notification_id), "doc")
            documents = await pipe.execute()
        return [Notification.model_validate_json(doc) for doc in documents if doc]

    def _reindex(self, pipe: Pipeline, current: Notification, updated: Notification) -> None:
        notification_id = str(updated.id)
        if current.status != updated.status:
            pipe.srem(RedisKeys.notification_status(current.status.value), notification_id)
            pipe.sadd(RedisKeys.notification_status(updated.status.value), notification_id)

        if updated.status == NotificationStatus.PENDING:
            pipe.zadd(RedisKeys.NOTIFICATION_DUE, {notification_id: self._due_score(updated)})
        else:
            pipe.zrem(RedisKeys.NOTIFICATION_DUE, notification_id)

    @staticmethod
    def _to_mapping(record: Notification) -> dict[str, str]:
        return {
            "doc": record.model_dump_json(),
            "status": record.status.value,
            "version": str(record.version),
        }

    @staticmethod
    def _due_score(record: Notification) -> float:
        return record.due_at.timestamp()

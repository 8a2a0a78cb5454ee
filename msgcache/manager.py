"""
Message manager: the single access point to the messages table.

Every operation validates its input, then runs its storage work through the
retry policy under a key made of the operation name and the message id.
Mutations run inside a transaction that is rolled back on any error.

The module-level coroutines at the bottom (get_messages, insert_message, ...)
are what the rest of the application calls; they lazily open the database
once and share one MessageManager for the life of the process.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from msgcache.config import get_settings
from msgcache.errors import (
    MessageConflictError,
    MessageNotFoundError,
    MessageValidationError,
)
from msgcache.metrics import record_message_operation
from msgcache.models import Message
from msgcache.retry import RetryPolicy, driver_error
from msgcache.schemas import MessageRecord
from msgcache.storage import init_database
from msgcache.validation import validate_content, validate_message_id, validate_timestamps

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class MessageManager:
    """
    CRUD access to cached messages over one SQLAlchemy engine.

    Use MessageManager.get_instance() (or get_message_manager()) to share a
    single manager per process; the first caller's engine is kept.
    """

    _instance: Optional["MessageManager"] = None
    _instance_lock = threading.Lock()

    def __init__(self, engine: Engine, retry_policy: Optional[RetryPolicy] = None):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        if retry_policy is None:
            settings = get_settings()
            retry_policy = RetryPolicy(
                max_retries=settings.MESSAGE_RETRY_MAX_RETRIES,
                delay_seconds=settings.MESSAGE_RETRY_DELAY_SECONDS,
            )
        self.retry_policy = retry_policy

    @classmethod
    def get_instance(cls, engine: Engine) -> "MessageManager":
        """Return the process-wide manager, creating it on first call."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls(engine)
                logger.info("Message manager created")
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Dispose the shared manager's engine and forget the instance."""
        with cls._instance_lock:
            if cls._instance is not None:
                cls._instance.engine.dispose()
                cls._instance = None
                logger.info("Message manager reset")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _track(self, operation: str) -> Iterator[None]:
        """Record the outcome of one operation in metrics."""
        try:
            yield
        except MessageValidationError as e:
            logger.warning(f"{operation} rejected: {e}")
            record_message_operation(operation, "validation_error")
            raise
        except MessageConflictError:
            record_message_operation(operation, "conflict")
            raise
        except MessageNotFoundError:
            record_message_operation(operation, "not_found")
            raise
        except Exception as e:
            logger.error(f"{operation} failed: {driver_error(e)}")
            record_message_operation(operation, "error")
            raise
        record_message_operation(operation, "ok")

    def _exists(self, db, message_id: int) -> bool:
        row = (
            db.query(Message.id)
            .filter(Message.message_id == message_id)
            .limit(1)
            .first()
        )
        return row is not None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def message_exists(self, message_id: int) -> bool:
        """Return True if a message with this message_id is stored."""
        with self._track("message_exists"):
            validate_message_id(message_id)

            async def work() -> bool:
                with self._session_factory() as db:
                    return self._exists(db, message_id)

            return await self.retry_policy.run(
                work, f"message_exists_{message_id}", label="message_exists"
            )

    async def get_message(self, message_id: int) -> Optional[MessageRecord]:
        """
        Retrieve a message by its message_id.

        Returns:
            MessageRecord if found, None otherwise
        """
        with self._track("get_message"):
            validate_message_id(message_id)

            async def work() -> Optional[MessageRecord]:
                with self._session_factory() as db:
                    row = (
                        db.query(Message)
                        .filter(Message.message_id == message_id)
                        .limit(1)
                        .first()
                    )
                    return MessageRecord.model_validate(row) if row is not None else None

            result = await self.retry_policy.run(
                work, f"get_message_{message_id}", label="get_message"
            )
            logger.debug(f"Message lookup {message_id}: {'found' if result else 'not found'}")
            return result

    async def get_messages(self) -> List[MessageRecord]:
        """Return every stored message ordered by row id."""
        with self._track("get_messages"):

            async def work() -> List[MessageRecord]:
                with self._session_factory() as db:
                    rows = db.query(Message).order_by(Message.id.asc()).all()
                    return [MessageRecord.model_validate(row) for row in rows]

            messages = await self.retry_policy.run(work, "get_messages", label="get_messages")
            logger.debug(f"Retrieved {len(messages)} messages")
            return messages

    async def insert_message(
        self,
        message_id: int,
        content: str,
        created_at: int,
        updated_at: int,
    ) -> None:
        """
        Insert a new message.

        Raises:
            MessageValidationError: invalid id, content or timestamps
            MessageConflictError: message_id is already stored
        """
        with self._track("insert_message"):
            validate_message_id(message_id)
            validate_content(content)
            validate_timestamps(created_at, updated_at)

            async def work() -> None:
                with self._session_factory() as db:
                    if self._exists(db, message_id):
                        raise MessageConflictError(f"Message with ID {message_id} already exists")
                    try:
                        db.add(Message(
                            message_id=message_id,
                            content=content,
                            created_at=created_at,
                            updated_at=updated_at,
                        ))
                        db.commit()
                    except IntegrityError as e:
                        db.rollback()
                        if "UNIQUE" in str(e.orig):
                            raise MessageConflictError(
                                f"Message with ID {message_id} already exists"
                            ) from e
                        raise
                    except Exception:
                        db.rollback()
                        raise

            await self.retry_policy.run(
                work, f"insert_message_{message_id}", label="insert_message"
            )
            logger.info(f"Message inserted: {message_id}")

    async def update_message(self, message_id: int, content: str) -> None:
        """
        Replace a message's content and refresh its updated_at.

        updated_at becomes the current time, or created_at if the clock reads
        earlier than that.

        Raises:
            MessageValidationError: invalid id or content
            MessageNotFoundError: no message with this message_id
        """
        with self._track("update_message"):
            validate_message_id(message_id)
            validate_content(content)

            async def work() -> None:
                now = _now_ms()
                with self._session_factory() as db:
                    try:
                        changed = (
                            db.query(Message)
                            .filter(Message.message_id == message_id)
                            .update(
                                {
                                    Message.content: content,
                                    Message.updated_at: func.max(Message.created_at, now),
                                },
                                synchronize_session=False,
                            )
                        )
                        db.commit()
                    except Exception:
                        db.rollback()
                        raise

                if changed == 0:
                    raise MessageNotFoundError(f"Message with ID {message_id} not found")

            await self.retry_policy.run(
                work, f"update_message_{message_id}", label="update_message"
            )
            logger.info(f"Message updated: {message_id}")

    async def delete_message(self, message_id: int) -> None:
        """
        Delete a message by its message_id.

        Raises:
            MessageValidationError: invalid id
            MessageNotFoundError: no message with this message_id
        """
        with self._track("delete_message"):
            validate_message_id(message_id)

            async def work() -> None:
                with self._session_factory() as db:
                    try:
                        deleted = (
                            db.query(Message)
                            .filter(Message.message_id == message_id)
                            .delete(synchronize_session=False)
                        )
                        db.commit()
                    except Exception:
                        db.rollback()
                        raise

                if deleted == 0:
                    raise MessageNotFoundError(f"Message with ID {message_id} not found")

            await self.retry_policy.run(
                work, f"delete_message_{message_id}", label="delete_message"
            )
            logger.info(f"Message deleted: {message_id}")

    async def get_message_count(self) -> int:
        """Return the total number of stored messages."""
        with self._track("get_message_count"):

            async def work() -> int:
                with self._session_factory() as db:
                    return db.query(func.count(Message.id)).scalar() or 0

            return await self.retry_policy.run(
                work, "get_message_count", label="get_message_count"
            )


# =============================================================================
# Process-wide access
# =============================================================================

_engine: Optional[Engine] = None
_init_lock = threading.Lock()


async def get_message_manager() -> MessageManager:
    """
    Return the shared manager, opening the database on first use.

    Raises:
        DatabaseInitializationError: if the database cannot be opened
    """
    global _engine
    with _init_lock:
        manager = MessageManager._instance
        if manager is None:
            if _engine is None:
                _engine = init_database()
            manager = MessageManager.get_instance(_engine)
        return manager


def reset_message_manager() -> None:
    """Close the shared database handle so the next call reopens it."""
    global _engine
    with _init_lock:
        MessageManager.reset_instance()
        if _engine is not None:
            _engine.dispose()
            _engine = None


async def get_messages() -> List[MessageRecord]:
    manager = await get_message_manager()
    return await manager.get_messages()


async def insert_message(message_id: int, content: str, created_at: int, updated_at: int) -> None:
    manager = await get_message_manager()
    await manager.insert_message(message_id, content, created_at, updated_at)


async def delete_message(message_id: int) -> None:
    manager = await get_message_manager()
    await manager.delete_message(message_id)


async def get_message(message_id: int) -> Optional[MessageRecord]:
    manager = await get_message_manager()
    return await manager.get_message(message_id)


async def update_message(message_id: int, content: str) -> None:
    manager = await get_message_manager()
    await manager.update_message(message_id, content)


async def get_message_count() -> int:
    manager = await get_message_manager()
    return await manager.get_message_count()


async def message_exists(message_id: int) -> bool:
    manager = await get_message_manager()
    return await manager.message_exists(message_id)

# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import Engine, delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from teamchat.core.errors import ChatError, ConflictError, NotFoundError, PersistenceError
from teamchat.db.base import Base
from teamchat.db.models import ChatMessage, ChatUser
from teamchat.db.session import create_db_engine, create_session_factory
from teamchat.domain.models import (
    Attachment,
    ChatScope,
    Message,
    MessageWithAuthor,
    NewMessage,
    NewUser,
    User,
    utcnow_naive,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _user_from_row(row: ChatUser) -> User:
    return User(
        id=row.id,
        username=row.username,
        display_name=row.display_name,
        role=row.role,
        avatar=row.avatar,
        is_online=bool(row.is_online),
        last_seen=row.last_seen,
    )


def _message_from_row(row: ChatMessage) -> Message:
    return Message(
        id=row.id,
        content=row.content,
        author_user_id=row.user_id,
        is_ai=bool(row.is_ai),
        timestamp=row.timestamp,
        is_typing=bool(row.is_typing),
        chat_scope=ChatScope(row.chat_scope),
        private_counterpart_user_id=row.private_chat_user_id,
        attachments=[Attachment.model_validate(a) for a in (row.attachments or [])],
    )


class SqlAlchemyChatStorage:
    """Durable storage on SQLAlchemy (PostgreSQL in production, SQLite in tests)."""

    backend_name: str = "database"

    def __init__(self, engine: Engine, *, create_schema: bool = False) -> None:
        self._engine: Engine = engine
        self._session_factory: sessionmaker[Session] = create_session_factory(engine)
        if create_schema:
            Base.metadata.create_all(bind=engine)

    @classmethod
    def from_uri(cls, database_uri: str, *, create_schema: bool = False) -> "SqlAlchemyChatStorage":
        return cls(create_db_engine(database_uri), create_schema=create_schema)

    def _run(self, op: str, fn: Callable[[Session], T]) -> T:
        try:
            with self._session_factory() as db:
                return fn(db)
        except ChatError:
            raise
        except SQLAlchemyError as e:
            logger.exception("storage operation failed: op=%s", op)
            raise PersistenceError(f"storage unavailable during {op}") from e

    def ping(self) -> None:
        def _op(db: Session) -> None:
            _ = db.execute(text("SELECT 1"))

        self._run("ping", _op)

    def get_user(self, user_id: str) -> User | None:
        def _op(db: Session) -> User | None:
            row = db.get(ChatUser, user_id)
            return _user_from_row(row) if row is not None else None

        return self._run("get_user", _op)

    def get_user_by_username(self, username: str) -> User | None:
        def _op(db: Session) -> User | None:
            row = db.execute(
                select(ChatUser).where(ChatUser.username == username)
            ).scalar_one_or_none()
            return _user_from_row(row) if row is not None else None

        return self._run("get_user_by_username", _op)

    def create_user(self, new_user: NewUser) -> User:
        def _op(db: Session) -> User:
            row = ChatUser(
                username=new_user.username,
                display_name=new_user.display_name,
                role=new_user.role,
                avatar=new_user.avatar,
                is_online=False,
                last_seen=utcnow_naive(),
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConflictError(
                    f"username {new_user.username!r} is already taken",
                    error_code="USERNAME_TAKEN",
                ) from e
            db.refresh(row)
            return _user_from_row(row)

        return self._run("create_user", _op)

    def list_users(self) -> list[User]:
        def _op(db: Session) -> list[User]:
            rows = db.execute(select(ChatUser).order_by(ChatUser.username.asc())).scalars().all()
            return [_user_from_row(r) for r in rows]

        return self._run("list_users", _op)

    def set_online(self, user_id: str, is_online: bool) -> None:
        def _op(db: Session) -> None:
            _ = db.execute(
                update(ChatUser)
                .where(ChatUser.id == user_id)
                .values(is_online=is_online, last_seen=utcnow_naive())
            )
            db.commit()

        self._run("set_online", _op)

    def create_message(self, new_message: NewMessage) -> Message:
        def _op(db: Session) -> Message:
            row = ChatMessage(
                content=new_message.content,
                user_id=new_message.author_user_id,
                is_ai=new_message.is_ai,
                timestamp=utcnow_naive(),
                is_typing=new_message.is_typing,
                chat_scope=new_message.chat_scope.value,
                private_chat_user_id=new_message.private_counterpart_user_id,
                attachments=[a.model_dump() for a in new_message.attachments] or None,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _message_from_row(row)

        return self._run("create_message", _op)

    def get_message(self, message_id: str) -> Message | None:
        def _op(db: Session) -> Message | None:
            row = db.get(ChatMessage, message_id)
            return _message_from_row(row) if row is not None else None

        return self._run("get_message", _op)

    def update_message_content(self, message_id: str, content: str) -> None:
        def _op(db: Session) -> None:
            result = db.execute(
                update(ChatMessage).where(ChatMessage.id == message_id).values(content=content)
            )
            if result.rowcount == 0:
                db.rollback()
                raise NotFoundError(f"message {message_id} not found")
            db.commit()

        self._run("update_message_content", _op)

    def list_messages(
        self,
        *,
        limit: int,
        scope: ChatScope,
        counterpart_user_id: str | None,
    ) -> list[MessageWithAuthor]:
        if limit <= 0:
            return []
        if scope == ChatScope.PRIVATE and counterpart_user_id is None:
            return []

        def _op(db: Session) -> list[MessageWithAuthor]:
            stmt = select(ChatMessage).where(ChatMessage.is_typing.is_(False))
            if scope == ChatScope.PRIVATE:
                stmt = stmt.where(
                    ChatMessage.chat_scope == ChatScope.PRIVATE.value,
                    ChatMessage.private_chat_user_id == counterpart_user_id,
                )
            else:
                stmt = stmt.where(ChatMessage.chat_scope == ChatScope.GENERAL.value)
            stmt = stmt.order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc()).limit(limit)

            rows = list(db.execute(stmt).unique().scalars().all())
            rows.reverse()
            return [
                MessageWithAuthor(
                    **_message_from_row(r).model_dump(),
                    author=_user_from_row(r.author) if r.author is not None else None,
                )
                for r in rows
            ]

        return self._run("list_messages", _op)

    def replace_typing(self, user_id: str, is_typing: bool) -> Message | None:
        def _op(db: Session) -> Message | None:
            _ = db.execute(
                delete(ChatMessage).where(
                    ChatMessage.user_id == user_id, ChatMessage.is_typing.is_(True)
                )
            )
            if not is_typing:
                db.commit()
                return None

            row = ChatMessage(
                content="",
                user_id=user_id,
                is_ai=False,
                timestamp=utcnow_naive(),
                is_typing=True,
                chat_scope=ChatScope.GENERAL.value,
                private_chat_user_id=None,
                attachments=None,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _message_from_row(row)

        return self._run("replace_typing", _op)

    def delete_typing_messages(self) -> int:
        def _op(db: Session) -> int:
            result = db.execute(delete(ChatMessage).where(ChatMessage.is_typing.is_(True)))
            db.commit()
            return int(result.rowcount or 0)

        return self._run("delete_typing_messages", _op)

    def clear_all(self) -> None:
        def _op(db: Session) -> None:
            _ = db.execute(delete(ChatMessage))
            _ = db.execute(delete(ChatUser))
            db.commit()

        self._run("clear_all", _op)

    def close(self) -> None:
        self._engine.dispose()

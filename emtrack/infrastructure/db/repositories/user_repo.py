from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from emtrack.application.dto.auth_dto import SystemConfig, User
from emtrack.domain.constants import SYSTEM_CONFIG_KEY, USERS_KEY
from emtrack.infrastructure.db.repositories.collection_repo import JsonCollectionRepository


class UserRepository:
    def __init__(self, collections: JsonCollectionRepository | None = None) -> None:
        self.collections = collections or JsonCollectionRepository()

    def list_users(self, session: Session, query: str | None = None) -> list[User]:
        users = [User.model_validate(row) for row in self.collections.load(session, USERS_KEY)]
        if query:
            needle = query.lower()
            users = [u for u in users if needle in u.user_id.lower() or needle in u.name.lower()]
        return users

    def get_by_login(self, session: Session, login: str) -> User | None:
        return next((u for u in self.list_users(session) if u.user_id == login), None)

    def get_by_id(self, session: Session, user_id: str) -> User | None:
        return next((u for u in self.list_users(session) if u.id == user_id), None)

    def add(self, session: Session, user: User) -> User:
        rows = self.collections.load(session, USERS_KEY)
        rows.append(user.to_storage())
        self.collections.save(session, USERS_KEY, rows)
        return user

    def replace(self, session: Session, user: User) -> None:
        rows = self.collections.load(session, USERS_KEY)
        payload = user.to_storage()
        self.collections.save(
            session,
            USERS_KEY,
            [payload if row.get("id") == user.id else row for row in rows],
        )

    def delete(self, session: Session, user_id: str) -> None:
        rows = self.collections.load(session, USERS_KEY)
        self.collections.save(session, USERS_KEY, [row for row in rows if row.get("id") != user_id])

    def get_config(self, session: Session) -> SystemConfig | None:
        data = self.collections.load_object(session, SYSTEM_CONFIG_KEY)
        return SystemConfig.model_validate(data) if data is not None else None

    def save_config(self, session: Session, config: SystemConfig | dict[str, Any]) -> None:
        payload = config.to_storage() if isinstance(config, SystemConfig) else config
        self.collections.save_object(session, SYSTEM_CONFIG_KEY, payload)

"""Database configuration and utilities."""
from contextlib import contextmanager
from typing import List, Optional

from sqlmodel import Session, create_engine, select

import config
from models import Setting, SQLModel, utcnow

# Database engine
config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
engine = create_engine(
    f"sqlite:///{config.DB_PATH}", connect_args={"check_same_thread": False}
)


@contextmanager
def get_session():
    """Get a database session context manager."""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database tables."""
    SQLModel.metadata.create_all(engine)


def get_setting(session: Session, owner: str, key: str) -> Optional[Setting]:
    """Get one owner's setting row by key."""
    return session.exec(
        select(Setting).where(Setting.user_id == owner, Setting.key == key)
    ).first()


def get_settings_by_category(session: Session, owner: str, category: str) -> List[Setting]:
    """All of an owner's settings in one category, oldest first."""
    return session.exec(
        select(Setting)
        .where(Setting.user_id == owner, Setting.category == category)
        .order_by(Setting.created_at)
    ).all()


def set_setting(
    session: Session,
    owner: str,
    key: str,
    value: str,
    type: str = "string",
    category: str = "general",
    description: Optional[str] = None,
) -> Setting:
    """Insert or update a setting value. The caller commits."""
    row = get_setting(session, owner, key)
    if row:
        row.value = value
        row.type = type
        row.category = category
        row.description = description
        row.updated_at = utcnow()
    else:
        row = Setting(
            user_id=owner,
            key=key,
            value=value,
            type=type,
            category=category,
            description=description,
        )
    session.add(row)
    return row

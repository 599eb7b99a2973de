from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, Integer
from sqlmodel import Field, SQLModel


class TimestampedModel(SQLModel):
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime | None = Field(
        default=None,
        nullable=True,
        sa_column_kwargs={"onupdate": datetime.utcnow},
    )


class UUIDModel(SQLModel):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)


def version_column() -> Column:
    """Column for SQLAlchemy's ``version_id_col``; one instance per table."""
    return Column("version", Integer, nullable=False, default=1)

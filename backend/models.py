from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class StorageSlot(SQLModel, table=True):
    __tablename__ = "storage_slot"

    key: str = Field(primary_key=True)  # 'logs' or 'settings'
    value: str  # Serialized JSON blob, overwritten wholesale on every save
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

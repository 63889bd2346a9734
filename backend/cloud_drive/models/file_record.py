"""FileRecord model - file and folder metadata (actual bytes live in object storage)."""
import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, Boolean, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from cloud_drive.models.base import Base, TimestampMixin

FOLDER_TYPE = "folder"
ROOT_FOLDER = "root"


class FileRecord(Base, TimestampMixin):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False, index=True)  # MIME type or "folder"
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Storage
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    object_id: Mapped[str] = mapped_column(String(500), nullable=False, index=True)

    # Ownership & sharing
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    folder: Mapped[str | None] = mapped_column(String(64), nullable=True, default=ROOT_FOLDER, index=True)
    share_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    is_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Starred & trash
    is_starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_trashed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trashed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_files_owner_folder", "owner_id", "folder"),
        Index("idx_files_owner_starred", "owner_id", "is_starred"),
        Index("idx_files_owner_trashed", "owner_id", "is_trashed"),
    )

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER_TYPE

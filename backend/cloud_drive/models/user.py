"""User model - local and Google-linked accounts."""
import uuid
from sqlalchemy import String, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from cloud_drive.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar: Mapped[str] = mapped_column(String(1000), default="")
    role: Mapped[str] = mapped_column(String(20), default="user")  # 'user' | 'admin'

    # OAuth
    auth_provider: Mapped[str] = mapped_column(String(20), default="local")  # 'local' | 'google'
    google_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    __table_args__ = (
        CheckConstraint(
            "auth_provider != 'local' OR password_hash IS NOT NULL",
            name="local_password",
        ),
    )

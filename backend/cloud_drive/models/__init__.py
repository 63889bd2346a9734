"""Import all models so SQLAlchemy metadata knows about them."""
from cloud_drive.models.base import Base
from cloud_drive.models.user import User
from cloud_drive.models.file_record import FileRecord

__all__ = ["Base", "User", "FileRecord"]

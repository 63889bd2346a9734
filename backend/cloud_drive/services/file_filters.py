"""Folder references and the file-listing filter builder.

A folder parameter coming from the client is either the top level, the id
of a real folder, or the name of a logical view (``starred``, ``trash``,
``images`` ...). ``parse_folder_ref`` turns the raw string into one of the
three ``FolderRef`` variants so the rest of the code dispatches on type
instead of comparing strings.

``build_file_filter`` picks exactly one predicate, in priority order:

1. starred  -> starred and not trashed
2. trashed  -> trashed
3. by id    -> inside that folder, not trashed
4. anything else (root and every other view) -> top level, not trashed

A search term narrows whichever branch fired.
"""
import enum
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from cloud_drive.models.file_record import FileRecord, ROOT_FOLDER


class ViewKind(str, enum.Enum):
    """Reserved folder names that select a logical view."""

    IMAGES = "images"
    VIDEOS = "videos"
    AUDIO = "audio"
    DOCUMENTS = "documents"
    FOLDERS = "folders"
    STARRED = "starred"
    TRASH = "trash"


@dataclass(frozen=True)
class Root:
    pass


@dataclass(frozen=True)
class ById:
    id: str


@dataclass(frozen=True)
class View:
    kind: ViewKind


FolderRef = Union[Root, ById, View]


def parse_folder_ref(value: Optional[str]) -> FolderRef:
    """Classify a raw folder parameter."""
    if not value or value == ROOT_FOLDER:
        return Root()
    try:
        return View(ViewKind(value))
    except ValueError:
        pass
    # One spelling per folder: stored parents are lower-case hyphenated uuids
    try:
        return ById(str(uuid.UUID(value)))
    except ValueError:
        return ById(value)


def storage_folder_value(ref: FolderRef) -> str:
    """Value persisted in ``FileRecord.folder`` for an upload target.

    Views are not places a file can live in, so they collapse to the top level.
    """
    return ref.id if isinstance(ref, ById) else ROOT_FOLDER


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class FileFilter:
    """Immutable listing predicate for one owner.

    ``folder`` is only consulted when neither ``starred_only`` nor
    ``trashed_only`` is set; ``None`` there means the top level.
    """

    owner_id: uuid.UUID
    starred_only: bool = False
    trashed_only: bool = False
    folder: Optional[str] = None
    search: Optional[str] = None

    def to_clause(self) -> ColumnElement:
        """SQLAlchemy WHERE clause for the record store."""
        conditions = [FileRecord.owner_id == self.owner_id]

        if self.starred_only:
            conditions += [FileRecord.is_starred.is_(True), FileRecord.is_trashed.is_not(True)]
        elif self.trashed_only:
            conditions.append(FileRecord.is_trashed.is_(True))
        elif self.folder is not None:
            conditions += [FileRecord.folder == self.folder, FileRecord.is_trashed.is_not(True)]
        else:
            conditions += [
                or_(FileRecord.folder == ROOT_FOLDER, FileRecord.folder.is_(None)),
                FileRecord.is_trashed.is_not(True),
            ]

        if self.search:
            conditions.append(FileRecord.name.ilike(f"%{_escape_like(self.search)}%", escape="\\"))

        return and_(*conditions)

    def matches(self, record) -> bool:
        """Evaluate the same predicate against an in-memory record."""
        if record.owner_id != self.owner_id:
            return False

        trashed = record.is_trashed is True
        if self.starred_only:
            ok = record.is_starred is True and not trashed
        elif self.trashed_only:
            ok = trashed
        elif self.folder is not None:
            ok = record.folder == self.folder and not trashed
        else:
            ok = record.folder in (ROOT_FOLDER, None) and not trashed

        if ok and self.search:
            ok = self.search.lower() in (record.name or "").lower()
        return ok


def build_file_filter(
    owner_id: uuid.UUID,
    folder: Union[FolderRef, str, None] = None,
    *,
    starred: bool = False,
    trashed: bool = False,
    search: Optional[str] = None,
) -> FileFilter:
    """Translate a logical view into a ``FileFilter``. Starred wins over trashed."""
    if isinstance(folder, str) or folder is None:
        folder = parse_folder_ref(folder)
    search = search.strip() if search else None

    if starred:
        return FileFilter(owner_id, starred_only=True, search=search or None)
    if trashed:
        return FileFilter(owner_id, trashed_only=True, search=search or None)
    if isinstance(folder, ById):
        return FileFilter(owner_id, folder=folder.id, search=search or None)
    return FileFilter(owner_id, search=search or None)

from .filesystem import FilesystemThreadStore
from .sqlite import SQLiteThreadStore

__all__ = ["FilesystemThreadStore", "SQLiteThreadStore"]

"""MULTAs storage backends.

Local-first storage: a workbook file is the primary store and a Google
Sheets spreadsheet is mirrored in the background. Serverless deployments
use the spreadsheet directly.
"""

from .codec import COLUMNS, HEADERS, build_record, record_to_row, row_to_record
from .factory import create_storage, is_serverless_environment, resolve_storage_mode
from .hybrid import HybridStorage
from .remote import SheetsStorage
from .sheets import RemoteMirror, SheetsClient
from .sync_queue import SyncQueue
from .workbook import WorkbookStorage

__all__ = [
    # Facades
    "HybridStorage",
    "SheetsStorage",
    "create_storage",
    "resolve_storage_mode",
    "is_serverless_environment",
    # Components
    "WorkbookStorage",
    "RemoteMirror",
    "SheetsClient",
    "SyncQueue",
    # Codec
    "COLUMNS",
    "HEADERS",
    "build_record",
    "record_to_row",
    "row_to_record",
]

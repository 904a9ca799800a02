"""Storage mode selection and construction.

``create_storage`` returns a new, independent facade on every call; callers
that want a shared instance hold on to it themselves.
"""

import logging
import os
from typing import Mapping, Optional, Union

from multas.config import Settings, get_settings
from multas.protocols import ConfigurationError
from multas.types import StorageMode

from .hybrid import HybridStorage
from .remote import SheetsStorage
from .sheets import RemoteMirror, SheetsClient
from .sync_queue import SyncQueue
from .workbook import WorkbookStorage

logger = logging.getLogger(__name__)

# Environment variables set by serverless platforms (ephemeral filesystem)
SERVERLESS_MARKERS = ("VERCEL", "VERCEL_ENV", "AWS_LAMBDA_FUNCTION_NAME", "K_SERVICE")


def is_serverless_environment(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return any(env.get(marker) for marker in SERVERLESS_MARKERS)


def resolve_storage_mode(
    settings: Optional[Settings] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> StorageMode:
    """Pick the storage mode.

    An explicit ``storage_mode`` setting wins; otherwise serverless platforms
    get remote-only storage and everything else gets hybrid.
    """
    settings = settings or get_settings()
    if settings.storage_mode:
        return StorageMode(settings.storage_mode)
    if is_serverless_environment(environ):
        return StorageMode.REMOTE
    return StorageMode.HYBRID


def create_mirror(settings: Settings) -> Optional[RemoteMirror]:
    """Remote mirror from settings, or None when credentials are missing."""
    if not settings.has_remote_credentials:
        return None
    client = SheetsClient(
        settings.sheets_spreadsheet_id,
        settings.sheets_access_token,
        timeout=settings.sheets_timeout,
    )
    return RemoteMirror(client, settings.sheets_sheet_name, timezone=settings.timezone)


def create_storage(
    settings: Optional[Settings] = None,
    *,
    mode: Optional[Union[StorageMode, str]] = None,
    start_background: bool = True,
    environ: Optional[Mapping[str, str]] = None,
) -> Union[HybridStorage, SheetsStorage]:
    """Build a storage facade for the configured mode.

    Args:
        settings: Settings to use (defaults to the cached environment settings).
        mode: Overrides mode resolution.
        start_background: Start the periodic sync thread in hybrid mode.
        environ: Environment used for serverless detection.

    Raises:
        ConfigurationError: Remote-only mode without spreadsheet credentials.
    """
    settings = settings or get_settings()
    resolved = StorageMode(mode) if mode else resolve_storage_mode(settings, environ)
    mirror = create_mirror(settings)

    if resolved == StorageMode.REMOTE:
        if mirror is None:
            raise ConfigurationError(
                "Remote storage mode requires MULTAS_SHEETS_SPREADSHEET_ID "
                "and MULTAS_SHEETS_ACCESS_TOKEN"
            )
        logger.info("Using remote-only storage (Google Sheets)")
        return SheetsStorage(mirror)

    local = WorkbookStorage(
        settings.workbook_path,
        settings.backup_dir,
        max_age_days=settings.backup_max_age_days,
        min_keep=settings.backup_min_keep,
        min_backup_interval=settings.backup_min_interval_seconds,
        timezone=settings.timezone,
    )
    sync_queue = None
    if mirror is not None:
        sync_queue = SyncQueue(
            mirror,
            batch_interval=settings.batch_interval_seconds,
            max_retries=settings.max_retries,
            periodic_interval=settings.periodic_sync_seconds,
        )

    storage = HybridStorage(local, mirror, sync_queue)
    if start_background:
        storage.start()
    logger.info(f"Using hybrid storage: {settings.workbook_path}")
    return storage

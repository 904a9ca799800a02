"""Backup rotation for the local workbook.

Free functions called by WorkbookStorage before each mutation and at
startup. Backups are plain copies of the workbook file stored in a
sibling ``backups/`` directory.
"""

import logging
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "multas_posts_backup_"
BACKUP_SUFFIX = ".xlsx"

SECONDS_PER_DAY = 24 * 60 * 60


def backup_filename(moment: Optional[datetime] = None) -> str:
    """``multas_posts_backup_<ISO time with : and . replaced by ->.xlsx``."""
    moment = moment or datetime.now()
    stamp = moment.isoformat(timespec="milliseconds").replace(":", "-").replace(".", "-")
    return f"{BACKUP_PREFIX}{stamp}{BACKUP_SUFFIX}"


def list_backups(backup_dir: Path) -> List[Path]:
    """Backup files, newest first.

    Ordered by modification time; equal mtimes fall back to the filename,
    which embeds the creation time.
    """
    if not backup_dir.exists():
        return []
    files = [
        p
        for p in backup_dir.iterdir()
        if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.name.endswith(BACKUP_SUFFIX)
    ]
    return sorted(files, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)


def create_backup(source: Path, backup_dir: Path) -> Optional[Path]:
    """Copy ``source`` into ``backup_dir``.

    Returns:
        Path of the new backup, or None when there is nothing to back up.

    Raises:
        OSError: If the copy fails. The caller decides whether that aborts.
    """
    if not source.exists():
        return None

    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / backup_filename()
    counter = 1
    while target.exists():
        target = backup_dir / f"{target.stem.split('__')[0]}__{counter}{BACKUP_SUFFIX}"
        counter += 1

    # copyfile, not copy2: the backup's mtime must be its creation time
    shutil.copyfile(source, target)
    logger.debug(f"Backup created: {target.name}")
    return target


def cleanup_old_backups(
    backup_dir: Path,
    max_age_days: int = 30,
    min_keep: int = 3,
    now: Optional[float] = None,
) -> int:
    """Delete backups older than ``max_age_days``.

    The ``min_keep`` most recent backups always survive, whatever their age.
    Individual deletion failures are logged and skipped.

    Returns:
        Number of files deleted.
    """
    now = time.time() if now is None else now
    cutoff = now - max_age_days * SECONDS_PER_DAY
    deleted = 0

    for path in list_backups(backup_dir)[min_keep:]:
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
                logger.debug(f"Old backup removed: {path.name}")
        except OSError as e:
            logger.error(f"Failed to remove backup {path.name}: {e}")

    if deleted:
        logger.info(f"Removed {deleted} old backup(s) from {backup_dir}")
    return deleted

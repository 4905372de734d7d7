"""JSON snapshots of the whole database.

A snapshot is one JSON object keyed by table name, each holding the list of
that table's rows as plain dicts. Restoring a snapshot replaces the entire
contents of the database in a single transaction.

Example:
    >>> path = create_backup(db)
    >>> path.name
    'backup-2024-01-15-10-30-00-123456.json'
    >>> restore_backup(db, latest_backup())
    {'users': 1, 'goals': 3, ...}
"""

import json
from pathlib import Path
from typing import Any

from sqlalchemy import delete
from sqlmodel import select

from studyhub.config import settings
from studyhub.database import DatabaseManager
from studyhub.errors import BackupError
from studyhub.logging import logger
from studyhub.models import TABLES
from studyhub.utils import utc_now

BACKUP_PREFIX = "backup-"
BACKUP_SUFFIX = ".json"


def backup_filename() -> str:
    """Timestamped snapshot filename (UTC to the microsecond, sorts chronologically)."""
    return f"{BACKUP_PREFIX}{utc_now().strftime('%Y-%m-%d-%H-%M-%S-%f')}{BACKUP_SUFFIX}"


def list_backups(backup_dir: Path | None = None) -> list[Path]:
    """Snapshot files in ``backup_dir``, oldest first."""
    backup_dir = Path(backup_dir or settings.backup_dir)  # type: ignore[arg-type]
    if not backup_dir.is_dir():
        return []
    files = [p for p in backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}") if p.is_file()]
    return sorted(files, key=lambda p: (p.name, p.stat().st_mtime))


def latest_backup(backup_dir: Path | None = None) -> Path | None:
    """Newest snapshot in ``backup_dir``, or None if there is none."""
    files = list_backups(backup_dir)
    return files[-1] if files else None


def snapshot(db: DatabaseManager) -> dict[str, list[dict[str, Any]]]:
    """Every row of every table, keyed by table name."""
    data: dict[str, list[dict[str, Any]]] = {}
    with db.session() as session:
        for table in TABLES:
            rows = session.exec(select(table)).all()
            data[table.__tablename__] = [row.model_dump() for row in rows]  # type: ignore[attr-defined]
    return data


def prune_backups(backup_dir: Path, keep: int) -> list[Path]:
    """Delete all but the newest ``keep`` snapshots; return the deleted paths."""
    files = list_backups(backup_dir)
    stale = files[: max(len(files) - keep, 0)]
    for path in stale:
        path.unlink()
        logger.info(f"🧹 Removed old backup {path.name}")
    return stale


def create_backup(
    db: DatabaseManager,
    backup_dir: Path | None = None,
    retention: int | None = None,
) -> Path:
    """Write a snapshot and prune old ones.

    Args:
        db: Initialized database manager
        backup_dir: Target directory (defaults to settings.backup_dir)
        retention: Snapshots to keep (defaults to settings.backup_retention)

    Returns:
        Path of the new snapshot file

    Raises:
        BackupError: If the file cannot be written
    """
    backup_dir = Path(backup_dir or settings.backup_dir)  # type: ignore[arg-type]
    retention = retention or settings.backup_retention

    data = snapshot(db)
    path = backup_dir / backup_filename()
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
        # "x" never replaces an existing snapshot
        with path.open("x", encoding="utf-8") as fh:
            fh.write(json.dumps(data, indent=2, ensure_ascii=False))
    except OSError as e:
        logger.error(f"Failed to write backup {path}: {e}")
        raise BackupError(f"Cannot write backup: {e}") from e

    rows = sum(len(v) for v in data.values())
    logger.info(f"💾 Backup written to {path} ({rows} rows)")
    prune_backups(backup_dir, retention)
    return path


def load_backup(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Read and sanity-check a snapshot file.

    Raises:
        BackupError: If the file is missing or not a snapshot
    """
    path = Path(path)
    if not path.is_file():
        raise BackupError(f"Backup file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise BackupError(f"Cannot read backup {path.name}: {e}") from e

    if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
        raise BackupError(f"{path.name} is not a StudyHub backup")
    return data


def restore_backup(db: DatabaseManager, path: Path) -> dict[str, int]:
    """Replace the database contents with a snapshot.

    Existing rows are deleted children first, then snapshot rows are inserted
    parents first, all in one transaction. Tables absent from the snapshot
    end up empty; unknown tables and columns are ignored.

    Args:
        db: Initialized database manager
        path: Snapshot file

    Returns:
        Number of rows restored per table

    Raises:
        BackupError: If the snapshot cannot be read
    """
    data = load_backup(path)
    counts: dict[str, int] = {}

    with db.session() as session:
        for table in reversed(TABLES):
            session.exec(delete(table))  # type: ignore[call-overload]

        for table in TABLES:
            name = table.__tablename__  # type: ignore[attr-defined]
            columns = set(table.model_fields)
            rows = [table(**{k: v for k, v in row.items() if k in columns}) for row in data.get(name, [])]
            session.add_all(rows)
            session.flush()
            counts[name] = len(rows)

        session.commit()

    logger.info(f"♻️ Restored {sum(counts.values())} rows from {Path(path).name}")
    return counts


__all__ = [
    "create_backup",
    "restore_backup",
    "latest_backup",
    "list_backups",
    "load_backup",
    "prune_backups",
    "snapshot",
]

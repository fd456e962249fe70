"""
File Operations

Disk access for the command line: reading saves, timestamped backups and
writing repaired saves. The core modules never touch the filesystem; only
guildfix.cli calls into here.

Layout of a Palworld save directory:

    <world>/Level.sav
    <world>/Players/<player uid>.sav
"""

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..errors import SaveFormatError
from ..save_editor.player_save import read_player_identity

logger = logging.getLogger(__name__)

LEVEL_SAVE_NAME = "Level.sav"
PLAYERS_DIR_NAME = "Players"


# ═══════════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FileOpResult:
    """Result of a file operation."""
    success: bool
    message: str
    path: Optional[str] = None
    backup_path: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# BACKUPS
# ═══════════════════════════════════════════════════════════════════════════════

class BackupManager:
    """
    Timestamped copies of a save before it is overwritten.

    Args:
        backup_dir: Directory for backups. If None, backups sit beside the
            original with a ".<timestamp>.bak" suffix.
    """

    def __init__(self, backup_dir: Optional[str] = None):
        self.backup_dir = Path(backup_dir) if backup_dir else None

    def backup_path_for(self, original: Path) -> Path:
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        if self.backup_dir:
            return self.backup_dir / f"{original.stem}_{timestamp}{original.suffix}"
        return original.with_suffix(f".{timestamp}.bak")

    def backup(self, file_path) -> FileOpResult:
        """
        Create a backup of a file.

        Returns:
            FileOpResult with backup path
        """
        original = Path(file_path)
        if not original.exists():
            return FileOpResult(False, f"File not found: {file_path}")

        backup_path = self.backup_path_for(original)
        if self.backup_dir:
            self.backup_dir.mkdir(parents=True, exist_ok=True)

        try:
            shutil.copy2(original, backup_path)
        except OSError as e:
            return FileOpResult(False, f"Backup failed: {e}")

        logger.info(f"Backed up {original} to {backup_path}")
        return FileOpResult(True, "Backup created", str(original), str(backup_path))


# ═══════════════════════════════════════════════════════════════════════════════
# READ / WRITE
# ═══════════════════════════════════════════════════════════════════════════════

def read_save(path) -> bytes:
    """Whole save file as bytes."""
    with open(path, "rb") as f:
        return f.read()


def write_save(path, data: bytes, backup: bool = True,
               backup_manager: Optional[BackupManager] = None) -> FileOpResult:
    """
    Write a repaired save, backing up the existing file first.

    The new bytes go to a temporary file beside the target and replace it
    in one rename, so a failed write leaves the original in place.
    """
    target = Path(path)
    backup_path = None
    if backup and target.exists():
        result = (backup_manager or BackupManager()).backup(target)
        if not result.success:
            return result
        backup_path = result.backup_path

    temp_path = target.with_name(f".{target.name}.tmp")
    try:
        with open(temp_path, "wb") as f:
            f.write(data)
        os.replace(temp_path, target)
    except OSError as e:
        if temp_path.exists():
            temp_path.unlink()
        return FileOpResult(False, f"Write failed: {e}", str(target), backup_path)

    logger.info(f"Wrote {len(data)} bytes to {target}")
    return FileOpResult(True, f"Wrote {target}", str(target), backup_path)


# ═══════════════════════════════════════════════════════════════════════════════
# SAVE DIRECTORIES
# ═══════════════════════════════════════════════════════════════════════════════

def resolve_level_save(path) -> Tuple[Path, Optional[Path]]:
    """
    Split a command-line argument into (Level.sav path, world directory).

    A directory means <dir>/Level.sav with player saves under <dir>/Players;
    a file stands alone and has no world directory.
    """
    path = Path(path)
    if path.is_dir():
        return path / LEVEL_SAVE_NAME, path
    return path, None


def find_player_saves(directory) -> List[Path]:
    """Players/*.sav under a world directory, sorted by name."""
    players_dir = Path(directory) / PLAYERS_DIR_NAME
    if not players_dir.is_dir():
        return []
    return sorted(p for p in players_dir.iterdir() if p.suffix == ".sav" and p.is_file())


def load_player_instances(directory) -> Dict[uuid.UUID, uuid.UUID]:
    """
    Map player uid -> character instance id from every player save.

    Unreadable player saves are skipped with a warning; they only make the
    instance ids of their players unknown.
    """
    instances = {}
    for path in find_player_saves(directory):
        try:
            identity = read_player_identity(read_save(path))
        except SaveFormatError as e:
            logger.warning(f"Skipping player save {path.name}: {e}")
            continue
        instances[identity.player_uid] = identity.instance_id
    logger.debug(f"Read {len(instances)} player identities from {directory}")
    return instances

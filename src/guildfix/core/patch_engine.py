"""
Patch Engine

decode -> locate -> synthesize -> insert -> encode, as one all-or-nothing
step over an in-memory save:

  - decoding errors propagate unchanged, no bytes are produced
  - a clean save is returned exactly as given
  - each reported member gets exactly one new character record
  - the tree is encoded once, after every insertion

The engine does no file I/O. Modes follow the write barrier idea: INSPECT
only diagnoses, PREVIEW builds the patched bytes for the caller to look at,
MUTATE builds them to be written.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from ..errors import SaveFormatError, StructureNotFound, UnresolvedInstance
from ..formats.gvas.gvas_file import GvasFile
from ..save_editor.world_save import CHARACTER_MAP_PATH, WorldSave
from .character_synthesizer import CharacterSynthesizer
from .corruption_locator import CorruptionReport, MissingCharacter, locate

logger = logging.getLogger(__name__)


class RepairMode(Enum):
    """Repair modes with increasing write access."""
    INSPECT = "inspect"     # Diagnose only
    PREVIEW = "preview"     # Build patched bytes, caller must not write
    MUTATE = "mutate"       # Build patched bytes to be written


class RepairOutcome(Enum):
    NO_CORRUPTION = "no_corruption"
    CORRUPTION_FOUND = "corruption_found"   # INSPECT mode only
    REPAIRED = "repaired"
    UNSUPPORTED = "unsupported"


@dataclass
class PatchDiff:
    """One change made to the save."""
    field_path: str
    old_value: Optional[str]
    new_value: Optional[str]
    display_old: str = ""
    display_new: str = ""


@dataclass
class RepairResult:
    outcome: RepairOutcome
    mode: RepairMode
    report: Optional[CorruptionReport] = None
    diffs: List[PatchDiff] = field(default_factory=list)
    data: Optional[bytes] = None
    error: Optional[SaveFormatError] = None

    @property
    def repaired(self) -> int:
        return len(self.diffs)

    @property
    def writable(self) -> bool:
        """True when data holds patched bytes meant to be written."""
        return self.mode == RepairMode.MUTATE and self.outcome == RepairOutcome.REPAIRED

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "mode": self.mode.value,
            "report": self.report.to_dict() if self.report else None,
            "diffs": [
                {"field_path": d.field_path, "old": d.old_value, "new": d.new_value,
                 "description": d.display_new}
                for d in self.diffs
            ],
            "error": str(self.error) if self.error else None,
        }


class PatchEngine:
    """
    Repairs guild members whose character record was deleted.

    Args:
        synthesizer: builds the replacement records; bundled template if None
        type_hints: struct type hints for decoding Level.sav
    """

    def __init__(self, synthesizer: Optional[CharacterSynthesizer] = None,
                 type_hints: Optional[Dict[str, str]] = None):
        self._synthesizer = synthesizer
        self.type_hints = type_hints

    @property
    def synthesizer(self) -> CharacterSynthesizer:
        if self._synthesizer is None:
            self._synthesizer = CharacterSynthesizer()
        return self._synthesizer

    def run(self, data: bytes, mode: RepairMode = RepairMode.MUTATE,
            player_instances: Optional[Mapping[uuid.UUID, uuid.UUID]] = None) -> RepairResult:
        """
        Diagnose and, outside INSPECT mode, repair a Level.sav image.

        A save without the expected world structure gives an UNSUPPORTED
        result carrying the StructureNotFound error. Every other error
        propagates.

        Raises:
            UnexpectedEnd, SizeMismatch, CompressionError: malformed input
            UnresolvedInstance: a missing member's instance id is unknown
            AlreadyExists: the report disagrees with the table
        """
        container = GvasFile.from_bytes(data, self.type_hints)
        try:
            world = WorldSave(container)
        except StructureNotFound as e:
            logger.error(f"Unsupported save: {e}")
            return RepairResult(RepairOutcome.UNSUPPORTED, mode, error=e)

        report = locate(world, player_instances)
        if report.is_clean:
            logger.info("No missing characters, save left unchanged")
            return RepairResult(RepairOutcome.NO_CORRUPTION, mode, report, data=data)
        if mode == RepairMode.INSPECT:
            return RepairResult(RepairOutcome.CORRUPTION_FOUND, mode, report)

        unresolved = [m for m in report if m.instance_id is None]
        if unresolved:
            raise UnresolvedInstance(unresolved[0].player_uid)

        diffs = [self._restore(world, missing) for missing in report]
        patched = container.to_bytes()
        logger.info(f"Restored {len(diffs)} characters ({len(data)} -> {len(patched)} bytes)")
        return RepairResult(RepairOutcome.REPAIRED, mode, report, diffs, patched)

    def _restore(self, world: WorldSave, missing: MissingCharacter) -> PatchDiff:
        record = self.synthesizer.synthesize(
            missing.player_uid, missing.guild_id, missing.instance_id, missing.player_name
        )
        world.insert_character(record)
        return PatchDiff(
            field_path=f"{CHARACTER_MAP_PATH}[{missing.instance_id}]",
            old_value=None,
            new_value=str(missing.instance_id),
            display_old="(missing)",
            display_new=(
                f"level 1 character for '{missing.player_name}' "
                f"in guild '{missing.guild_name}' ({missing.guild_id})"
            ),
        )


def repair(data: bytes, player_instances: Optional[Mapping[uuid.UUID, uuid.UUID]] = None) -> bytes:
    """
    Return data with every missing guild member's character restored.

    Returns the input unchanged when nothing is missing.

    Raises:
        StructureNotFound: not a Level.sav this tool understands
        SaveFormatError: any decode or patch failure
    """
    result = PatchEngine().run(data, RepairMode.MUTATE, player_instances)
    if result.outcome == RepairOutcome.UNSUPPORTED:
        raise result.error
    return result.data

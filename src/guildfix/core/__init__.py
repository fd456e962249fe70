"""
Repair logic for guildfix.

- corruption_locator: find guild members without a character record
- character_synthesizer: build level-1 character records from a template
- patch_engine: decode, repair and re-encode a Level.sav in one step
- file_operations: backups and disk writes for the command line
"""

from .corruption_locator import CorruptionReport, MissingCharacter, locate
from .character_synthesizer import CharacterSynthesizer, load_template, synthesize
from .patch_engine import (
    PatchEngine, PatchDiff, RepairMode, RepairOutcome, RepairResult, repair,
)

__all__ = [
    'CorruptionReport', 'MissingCharacter', 'locate',
    'CharacterSynthesizer', 'load_template', 'synthesize',
    'PatchEngine', 'PatchDiff', 'RepairMode', 'RepairOutcome', 'RepairResult', 'repair',
]

"""
Corruption Locator

Finds guild members whose character is missing from the character table.
Pure and total: it only reads the WorldSave and always returns a report,
empty when the save is consistent.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional

from ..save_editor.world_save import WorldSave

logger = logging.getLogger(__name__)


@dataclass
class MissingCharacter:
    """A guild member with no record in CharacterSaveParameterMap."""
    player_uid: uuid.UUID
    guild_id: uuid.UUID
    instance_id: Optional[uuid.UUID] = None
    player_name: Optional[str] = None
    guild_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "player_uid": str(self.player_uid),
            "guild_id": str(self.guild_id),
            "instance_id": str(self.instance_id) if self.instance_id else None,
            "player_name": self.player_name,
            "guild_name": self.guild_name,
        }


@dataclass
class CorruptionReport:
    """Missing characters in guild order, then member order."""
    missing: List[MissingCharacter] = field(default_factory=list)
    guilds_checked: int = 0
    members_checked: int = 0

    @property
    def is_clean(self) -> bool:
        return not self.missing

    def __len__(self) -> int:
        return len(self.missing)

    def __iter__(self) -> Iterator[MissingCharacter]:
        return iter(self.missing)

    def to_dict(self) -> dict:
        return {
            "guilds_checked": self.guilds_checked,
            "members_checked": self.members_checked,
            "missing": [m.to_dict() for m in self.missing],
        }


def locate(world: WorldSave,
           player_instances: Optional[Mapping[uuid.UUID, uuid.UUID]] = None) -> CorruptionReport:
    """
    Diagnose a world save.

    Args:
        world: the decoded Level.sav
        player_instances: player uid -> instance id, read from player saves.
            Takes precedence over the guild's own character handles.

    A player listed on several rosters is reported once, under the first
    guild that lists them.

    Returns:
        CorruptionReport; instance_id stays None where neither source knows it
    """
    player_instances = player_instances or {}
    report = CorruptionReport()
    reported = set()

    for guild in world.guilds():
        report.guilds_checked += 1
        for member in guild.members:
            report.members_checked += 1
            if world.has_player(member.player_uid) or member.player_uid in reported:
                continue
            reported.add(member.player_uid)

            instance_id = player_instances.get(member.player_uid)
            if instance_id is None:
                instance_id = guild.data.instance_for(member.player_uid)

            missing = MissingCharacter(
                player_uid=member.player_uid,
                guild_id=guild.guild_id,
                instance_id=instance_id,
                player_name=member.player_name,
                guild_name=guild.name,
            )
            report.missing.append(missing)
            logger.warning(
                f"Guild '{guild.name}' ({guild.guild_id}) member '{member.player_name}' "
                f"({member.player_uid}) has no character record"
            )

    logger.info(
        f"Checked {report.members_checked} members in {report.guilds_checked} guilds: "
        f"{len(report.missing)} missing"
    )
    return report

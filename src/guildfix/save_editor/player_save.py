"""Identity lookup in Players/<uid>.sav files."""

import logging
import uuid
from dataclasses import dataclass

from ..errors import StructureNotFound
from ..formats.gvas.base import GuidNode, StructNode
from ..formats.gvas.gvas_file import GvasFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerIdentity:
    player_uid: uuid.UUID
    instance_id: uuid.UUID


def read_player_identity(data: bytes) -> PlayerIdentity:
    """
    Read .SaveData.IndividualId from a player save.

    Raises:
        StructureNotFound: the file is not a player save
    """
    save = GvasFile.from_bytes(data, type_hints={})

    save_data = save.get("SaveData")
    if not isinstance(save_data, StructNode):
        raise StructureNotFound(".SaveData", "missing or not a struct")
    individual_id = save_data.get("IndividualId")
    if not isinstance(individual_id, StructNode):
        raise StructureNotFound(".SaveData.IndividualId", "missing or not a struct")

    ids = {}
    for name in ("PlayerUId", "InstanceId"):
        node = individual_id.get(name)
        if not isinstance(node, GuidNode):
            raise StructureNotFound(f".SaveData.IndividualId.{name}", "missing Guid")
        ids[name] = node.value

    identity = PlayerIdentity(ids["PlayerUId"], ids["InstanceId"])
    logger.debug(f"Player {identity.player_uid} has instance {identity.instance_id}")
    return identity

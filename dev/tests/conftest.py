import pytest

from save_builder import (
    ALICE, ALICE_INSTANCE, BOB, BOB_INSTANCE, CAROL, CAROL_INSTANCE,
    build_player_save, build_world_bytes, player_save_name,
)


@pytest.fixture
def clean_save():
    """Level.sav with every guild member's character present."""
    return build_world_bytes()


@pytest.fixture
def bob_missing_save():
    """Level.sav where Bob (guild Alpha) lost his character."""
    return build_world_bytes(missing=[BOB])


@pytest.fixture
def world_dir(tmp_path):
    """
    A world directory with Level.sav (Bob and Carol missing) and one
    player save per player.
    """
    (tmp_path / "Level.sav").write_bytes(build_world_bytes(missing=[BOB, CAROL], handles=False))
    players = tmp_path / "Players"
    players.mkdir()
    for uid, iid in ((ALICE, ALICE_INSTANCE), (BOB, BOB_INSTANCE), (CAROL, CAROL_INSTANCE)):
        (players / player_save_name(uid)).write_bytes(build_player_save(uid, iid))
    return tmp_path

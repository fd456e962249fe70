"""
Struct type hints for map keys and values.

Map entries carry no struct type of their own, so the decoder needs to be
told which struct a given map path holds. Paths follow the reader's naming:
a leading dot, property names joined by dots, and ".Key" / ".Value" for the
map side. STRUCT means "nested property list"; anything else names the
struct type (Guid, Vector, ...).
"""

STRUCT = "Struct"

PALWORLD_TYPE_HINTS = {
    ".worldSaveData.CharacterSaveParameterMap.Key": STRUCT,
    ".worldSaveData.CharacterSaveParameterMap.Value": STRUCT,
    ".worldSaveData.FoliageGridSaveDataMap.Key": STRUCT,
    ".worldSaveData.FoliageGridSaveDataMap.Value": STRUCT,
    ".worldSaveData.FoliageGridSaveDataMap.ModelMap.Value": STRUCT,
    ".worldSaveData.FoliageGridSaveDataMap.ModelMap.InstanceDataMap.Key": STRUCT,
    ".worldSaveData.FoliageGridSaveDataMap.ModelMap.InstanceDataMap.Value": STRUCT,
    ".worldSaveData.MapObjectSpawnerInStageSaveData.Key": STRUCT,
    ".worldSaveData.MapObjectSpawnerInStageSaveData.Value": STRUCT,
    ".worldSaveData.MapObjectSpawnerInStageSaveData.SpawnerDataMapByLevelObjectInstanceId.Key": "Guid",
    ".worldSaveData.MapObjectSpawnerInStageSaveData.SpawnerDataMapByLevelObjectInstanceId.Value": STRUCT,
    ".worldSaveData.MapObjectSpawnerInStageSaveData.SpawnerDataMapByLevelObjectInstanceId.ItemMap.Value": STRUCT,
    ".worldSaveData.ItemContainerSaveData.Key": STRUCT,
    ".worldSaveData.ItemContainerSaveData.Value": STRUCT,
    ".worldSaveData.CharacterContainerSaveData.Key": STRUCT,
    ".worldSaveData.CharacterContainerSaveData.Value": STRUCT,
    ".worldSaveData.GroupSaveDataMap.Key": "Guid",
    ".worldSaveData.GroupSaveDataMap.Value": STRUCT,
    ".worldSaveData.WorkSaveData.WorkAssignMap.Value": STRUCT,
    ".worldSaveData.DungeonSaveData.MapObjectSaveData.Model.EffectMap.Value": STRUCT,
    ".worldSaveData.DungeonSaveData.MapObjectSaveData.ConcreteModel.ModuleMap.Value": STRUCT,
    ".worldSaveData.MapObjectSaveData.Model.EffectMap.Value": STRUCT,
    ".worldSaveData.MapObjectSaveData.ConcreteModel.ModuleMap.Value": STRUCT,
    ".worldSaveData.BaseCampSaveData.Key": "Guid",
    ".worldSaveData.BaseCampSaveData.Value": STRUCT,
    ".worldSaveData.BaseCampSaveData.ModuleMap.Value": STRUCT,
    ".worldSaveData.EnemyCampSaveData.EnemyCampStatusMap.Value": STRUCT,
}

# Fixed-layout engine structs, kept as raw bytes. Sizes are for UE5 saves
# (double-precision vectors); only used where the stream gives no size.
NATIVE_STRUCT_SIZES = {
    "DateTime": 8,
    "Timespan": 8,
    "Vector": 24,
    "Vector2D": 16,
    "Vector4": 32,
    "Rotator": 24,
    "Quat": 32,
    "LinearColor": 16,
    "Color": 4,
    "IntPoint": 8,
    "IntVector": 12,
}

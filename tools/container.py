#!/usr/bin/env python3
"""
container.py - Encode groups, images and sounds into asset container records.

Per group, in emit order:
  GroupIDRecord      { id, 0, 0, <name>ID.cubes }
  GroupDataRecord    AssetGroupHeader + load stream bytes
  GroupHandleRecord  { &<name>_data.hdr, <name>.cubes }
  one PinnedImageRecord / TiledImageRecord per image

Binary layouts (little-endian):
  AssetGroupHeader   headerSize:u32 reserved:u32 numTiles:u32 dataSize:u32 signature:u64
  PinnedAssetImage   width:u16 height:u16 frames:u16 index:u16
  AssetImage         width:u16 height:u16 frames:u16 (+ pointer to u16 tile indices)
  AudioModuleID      moduleId:u32 reserved:u32 reserved:u32 kind:u32

The `cubes` fields named in the records belong to the firmware runtime; the
compiler only references them.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Union

from asset_model import AssetModelError, Group, Image, Sound, Tile, TilePool

HEADER_FMT = "<IIIIQ"
HEADER_SIZE = struct.calcsize(HEADER_FMT)
PINNED_FMT = "<HHHH"
TILED_FMT = "<HHH"
SOUND_FMT = "<IIII"

U16_MAX = 0xFFFF

# Ids the firmware currently expects for every group / every sound.
FIXED_GROUP_ID = 1
FIXED_SOUND_ID = 2

ID_MODES = ("fixed", "sequential")


class SoundKind(enum.IntEnum):
    SAMPLE = 0


class IdAllocator:
    """Hands out module ids.

    "fixed" keeps the ids existing firmware expects (1 for groups, 2 for
    sounds). "sequential" numbers each kind from 1 upward.
    """

    def __init__(self, mode: str = "fixed"):
        if mode not in ID_MODES:
            raise ValueError(f"Unknown id mode: {mode} (expected one of {', '.join(ID_MODES)})")
        self.mode = mode
        self._next: Dict[str, int] = {"group": 1, "sound": 1}

    def _take(self, kind: str, fixed: int) -> int:
        if self.mode == "fixed":
            return fixed
        n = self._next[kind]
        self._next[kind] = n + 1
        return n

    def group_id(self) -> int:
        return self._take("group", FIXED_GROUP_ID)

    def sound_id(self) -> int:
        return self._take("sound", FIXED_SOUND_ID)


@dataclass
class GroupIDRecord:
    name: str
    module_id: int


@dataclass
class GroupHeader:
    num_tiles: int
    data_size: int
    signature: int
    header_size: int = HEADER_SIZE
    reserved: int = 0

    def pack(self) -> bytes:
        hdr = struct.pack(
            HEADER_FMT,
            self.header_size & 0xFFFFFFFF,
            self.reserved & 0xFFFFFFFF,
            self.num_tiles & 0xFFFFFFFF,
            self.data_size & 0xFFFFFFFF,
            self.signature & 0xFFFFFFFFFFFFFFFF,
        )
        assert len(hdr) == HEADER_SIZE, f"Header size mismatch: {len(hdr)} != {HEADER_SIZE}"
        return hdr


@dataclass
class GroupDataRecord:
    name: str
    header: GroupHeader
    data: bytes

    def pack(self) -> bytes:
        return self.header.pack() + self.data


@dataclass
class GroupHandleRecord:
    name: str


@dataclass
class PinnedImageRecord:
    name: str
    width: int
    height: int
    frames: int
    index: int

    def pack(self) -> bytes:
        return struct.pack(PINNED_FMT, self.width, self.height, self.frames, self.index)


@dataclass
class TiledImageRecord:
    name: str
    width: int
    height: int
    frames: int
    tiles: List[int] = field(default_factory=list)   # frame-major, then y, then x

    @property
    def tiles_name(self) -> str:
        return f"{self.name}_tiles"

    def frame_tiles(self) -> List[List[int]]:
        n = self.width * self.height
        return [self.tiles[f * n:(f + 1) * n] for f in range(self.frames)]

    def pack(self) -> bytes:
        return struct.pack(TILED_FMT, self.width, self.height, self.frames)

    def pack_tiles(self) -> bytes:
        return struct.pack(f"<{len(self.tiles)}H", *self.tiles)


@dataclass
class SoundRecord:
    name: str
    module_id: int
    kind: SoundKind = SoundKind.SAMPLE

    def pack(self) -> bytes:
        return struct.pack(SOUND_FMT, self.module_id, 0, 0, int(self.kind))


ImageRecord = Union[PinnedImageRecord, TiledImageRecord]
Record = Union[GroupIDRecord, GroupDataRecord, GroupHandleRecord, PinnedImageRecord, TiledImageRecord, SoundRecord]


def _u16(value: int, what: str, image: Image) -> int:
    if not (0 <= value <= U16_MAX):
        raise AssetModelError(f"{image.name}: {what} {value} does not fit in 16 bits")
    return value


def _pool_index(pool: TilePool, tile: Tile, image: Image) -> int:
    if tile not in pool:
        raise AssetModelError(f"{image.name}: references a tile that is not in the group's tile pool")
    return _u16(pool.index(tile), "tile index", image)


def encode_pinned_image(image: Image, pool: TilePool) -> PinnedImageRecord:
    # Frames are expected at consecutive pool indices (see TilePool.add_run);
    # only the first one is recorded.
    for f, grid in enumerate(image.frames):
        if grid.width != 1 or grid.height != 1:
            raise AssetModelError(
                f"{image.name}: pinned frame {f} is {grid.width}x{grid.height}, expected 1x1"
            )
    first = image.frames[0]
    return PinnedImageRecord(
        name=image.name,
        width=_u16(first.width, "width", image),
        height=_u16(first.height, "height", image),
        frames=_u16(len(image.frames), "frame count", image),
        index=_pool_index(pool, first.tile_at(0, 0), image),
    )


def encode_tiled_image(image: Image, pool: TilePool) -> TiledImageRecord:
    width = image.width
    height = image.height
    if width == 0 or height == 0:
        raise AssetModelError(f"{image.name}: frame is {width}x{height}, expected at least 1x1")
    tiles: List[int] = []
    for f, grid in enumerate(image.frames):
        if grid.width != width or grid.height != height:
            raise AssetModelError(
                f"{image.name}: frame {f} is {grid.width}x{grid.height}, expected {width}x{height}"
            )
        for y in range(height):
            for x in range(width):
                tiles.append(_pool_index(pool, grid.tile_at(x, y), image))
    return TiledImageRecord(
        name=image.name,
        width=_u16(width, "width", image),
        height=_u16(height, "height", image),
        frames=_u16(len(image.frames), "frame count", image),
        tiles=tiles,
    )


def encode_image(image: Image, pool: TilePool) -> ImageRecord:
    if not image.frames:
        raise AssetModelError(f"{image.name}: image has no frames")
    if image.pinned:
        return encode_pinned_image(image, pool)
    return encode_tiled_image(image, pool)


def encode_group(group: Group, ids: IdAllocator) -> List[Record]:
    header = GroupHeader(
        num_tiles=len(group.pool),
        data_size=len(group.load_stream),
        signature=group.signature,
    )
    records: List[Record] = [
        GroupIDRecord(name=group.name, module_id=ids.group_id()),
        GroupDataRecord(name=group.name, header=header, data=bytes(group.load_stream)),
        GroupHandleRecord(name=group.name),
    ]
    for image in group.images:
        records.append(encode_image(image, group.pool))
    return records


def encode_sound(sound: Sound, ids: IdAllocator) -> SoundRecord:
    return SoundRecord(name=sound.name, module_id=ids.sound_id())


def record_debug(record: Record) -> dict:
    """JSON-friendly view of a record for the --json dump."""
    if isinstance(record, GroupIDRecord):
        return {"kind": "group_id", "name": f"{record.name}ID", "id": record.module_id}
    if isinstance(record, GroupDataRecord):
        h = record.header
        return {
            "kind": "group_data",
            "name": f"{record.name}_data",
            "header_size": h.header_size,
            "num_tiles": h.num_tiles,
            "data_size": h.data_size,
            "signature": f"0x{h.signature:016x}",
        }
    if isinstance(record, GroupHandleRecord):
        return {"kind": "group", "name": record.name}
    if isinstance(record, PinnedImageRecord):
        return {
            "kind": "pinned_image",
            "name": record.name,
            "width": record.width,
            "height": record.height,
            "frames": record.frames,
            "index": record.index,
        }
    if isinstance(record, TiledImageRecord):
        return {
            "kind": "image",
            "name": record.name,
            "width": record.width,
            "height": record.height,
            "frames": record.frames,
            "tiles": record.tiles,
        }
    if isinstance(record, SoundRecord):
        return {"kind": "sound", "name": record.name, "id": record.module_id, "type": record.kind.name}
    raise TypeError(f"Unhandled record type: {type(record).__name__}")

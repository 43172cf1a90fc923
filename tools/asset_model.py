#!/usr/bin/env python3
"""
asset_model.py - Tiles, tile pools, grids, images, groups and sounds.

The model is built once per run (see tiler.py) and is read-only input to
container.py. Tile identity is content-based: two tiles with the same pixel
bytes are the same tile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List

TILE_SIZE = 8
# RGB565, 2 bytes per pixel
TILE_BYTES = TILE_SIZE * TILE_SIZE * 2


class AssetModelError(Exception):
    pass


@dataclass(frozen=True)
class Tile:
    pixels: bytes             # TILE_BYTES of little-endian RGB565, row-major

    def __post_init__(self):
        if len(self.pixels) != TILE_BYTES:
            raise AssetModelError(f"Tile must be {TILE_BYTES} bytes, got {len(self.pixels)}")


class TilePool:
    """Ordered, deduplicated tiles of one group.

    Indices are dense and handed out once, in insertion order.
    """

    def __init__(self):
        self._tiles: List[Tile] = []
        self._index: Dict[Tile, int] = {}

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self) -> Iterator[Tile]:
        return iter(self._tiles)

    def __getitem__(self, i: int) -> Tile:
        return self._tiles[i]

    def __contains__(self, tile: Tile) -> bool:
        return tile in self._index

    def add(self, tile: Tile) -> int:
        idx = self._index.get(tile)
        if idx is None:
            idx = len(self._tiles)
            self._tiles.append(tile)
            self._index[tile] = idx
        return idx

    def add_run(self, tiles: List[Tile]) -> int:
        """Add tiles so they occupy consecutive indices; return the first index.

        An existing contiguous run of the same tiles is reused. A run that
        would need some tiles already pooled elsewhere cannot be made
        contiguous and is rejected.
        """
        if not tiles:
            raise AssetModelError("Empty tile run")
        if len(set(tiles)) != len(tiles):
            raise AssetModelError("Tile run contains duplicate tiles")

        if tiles[0] in self._index:
            start = self._index[tiles[0]]
            if all(self._index.get(t) == start + i for i, t in enumerate(tiles)):
                return start
            raise AssetModelError(
                f"Tile run overlaps pooled tiles and cannot be contiguous (first tile at {start})"
            )
        if any(t in self._index for t in tiles):
            raise AssetModelError("Tile run overlaps pooled tiles and cannot be contiguous")

        start = len(self._tiles)
        for t in tiles:
            self.add(t)
        return start

    def index(self, tile: Tile) -> int:
        try:
            return self._index[tile]
        except KeyError:
            raise AssetModelError("Tile is not in the group's tile pool") from None


@dataclass
class TileGrid:
    width: int
    height: int
    tiles: List[Tile]         # row-major, width * height entries

    def __post_init__(self):
        if len(self.tiles) != self.width * self.height:
            raise AssetModelError(
                f"Grid {self.width}x{self.height} needs {self.width * self.height} tiles, got {len(self.tiles)}"
            )

    def tile_at(self, x: int, y: int) -> Tile:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x},{y}) outside {self.width}x{self.height} grid")
        return self.tiles[y * self.width + x]


@dataclass
class Image:
    name: str
    frames: List[TileGrid] = field(default_factory=list)
    pinned: bool = False

    @property
    def width(self) -> int:
        return self.frames[0].width if self.frames else 0

    @property
    def height(self) -> int:
        return self.frames[0].height if self.frames else 0


@dataclass
class Group:
    name: str
    signature: int
    load_stream: bytes
    pool: TilePool
    images: List[Image] = field(default_factory=list)


@dataclass
class Sound:
    name: str

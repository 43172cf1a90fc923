#!/usr/bin/env python3
"""
tiler.py - Turn an AssetScript into the in-memory asset model.

PNG -> RGB565 -> 8x8 tiles. Each group gets its own tile pool:
  - pinned images are pooled first, as one contiguous run per image
  - tiled images are pooled with exact (content) deduplication
The load stream is the pooled tiles' pixel data back to back; the signature
is a 64-bit hash of the load stream.
"""

from __future__ import annotations

import hashlib
import os
from typing import List, Tuple

import numpy as np
from PIL import Image

from asset_model import (
    TILE_SIZE,
    AssetModelError,
    Group,
    Image as AssetImage,
    Sound,
    Tile,
    TileGrid,
    TilePool,
)
from asset_script import AssetScript, AssetScriptError, GroupDef, ImageDef


def load_rgb565(path: str) -> np.ndarray:
    with Image.open(path) as im:
        rgb = np.asarray(im.convert("RGB"), dtype=np.uint16)
    r = rgb[:, :, 0]
    g = rgb[:, :, 1]
    b = rgb[:, :, 2]
    return ((r >> 3) << 11) | ((g >> 2) << 5) | (b >> 3)


def rgb565_to_rgb(px: np.ndarray) -> np.ndarray:
    px = px.astype(np.uint16)
    r = (px >> 11) & 0x1F
    g = (px >> 5) & 0x3F
    b = px & 0x1F
    rgb = np.stack([(r << 3) | (r >> 2), (g << 2) | (g >> 4), (b << 3) | (b >> 2)], axis=-1)
    return rgb.astype(np.uint8)


def tile_from_block(block: np.ndarray) -> Tile:
    return Tile(block.astype("<u2").tobytes())


def grid_from_pixels(px: np.ndarray) -> TileGrid:
    h, w = px.shape
    tw = w // TILE_SIZE
    th = h // TILE_SIZE
    tiles: List[Tile] = []
    for ty in range(th):
        for tx in range(tw):
            block = px[ty * TILE_SIZE:(ty + 1) * TILE_SIZE, tx * TILE_SIZE:(tx + 1) * TILE_SIZE]
            tiles.append(tile_from_block(block))
    return TileGrid(tw, th, tiles)


def cut_frames(px: np.ndarray, frame_w: int, frame_h: int) -> List[np.ndarray]:
    h, w = px.shape
    frames = []
    for fy in range(h // frame_h):
        for fx in range(w // frame_w):
            frames.append(px[fy * frame_h:(fy + 1) * frame_h, fx * frame_w:(fx + 1) * frame_w])
    return frames


def load_image_frames(script_path: str, idef: ImageDef) -> List[TileGrid]:
    def err(message: str) -> None:
        raise AssetScriptError(script_path, idef.line, 1, f"{idef.name}: {message}")

    if not os.path.isfile(idef.file):
        err(f"image file not found: {idef.file}")
    try:
        px = load_rgb565(idef.file)
    except OSError as e:
        err(f"cannot read image {idef.file}: {e}")

    h, w = px.shape
    frame_w = idef.frame_w or w
    frame_h = idef.frame_h or h
    if frame_w % TILE_SIZE or frame_h % TILE_SIZE:
        err(f"frame size {frame_w}x{frame_h} is not a multiple of {TILE_SIZE}")
    if w % frame_w or h % frame_h:
        err(f"image size {w}x{h} is not a multiple of frame size {frame_w}x{frame_h}")
    if idef.pinned and (frame_w, frame_h) != (TILE_SIZE, TILE_SIZE):
        err(f"pinned images need {TILE_SIZE}x{TILE_SIZE} frames, got {frame_w}x{frame_h}")

    return [grid_from_pixels(f) for f in cut_frames(px, frame_w, frame_h)]


def compute_signature(load_stream: bytes) -> int:
    digest = hashlib.blake2b(load_stream, digest_size=8).digest()
    return int.from_bytes(digest, "little")


def build_group(script_path: str, gdef: GroupDef) -> Group:
    loaded: List[Tuple[ImageDef, List[TileGrid]]] = [
        (idef, load_image_frames(script_path, idef)) for idef in gdef.images
    ]

    pool = TilePool()
    for idef, grids in loaded:
        if not idef.pinned:
            continue
        try:
            pool.add_run([g.tile_at(0, 0) for g in grids])
        except AssetModelError as e:
            raise AssetScriptError(script_path, idef.line, 1, f"{idef.name}: {e}") from e
    for idef, grids in loaded:
        if idef.pinned:
            continue
        for g in grids:
            for t in g.tiles:
                pool.add(t)

    load_stream = b"".join(t.pixels for t in pool)
    return Group(
        name=gdef.name,
        signature=compute_signature(load_stream),
        load_stream=load_stream,
        pool=pool,
        images=[AssetImage(name=idef.name, frames=grids, pinned=idef.pinned) for idef, grids in loaded],
    )


def build_model(script: AssetScript) -> Tuple[List[Group], List[Sound]]:
    groups = [build_group(script.path, gdef) for gdef in script.groups]
    sounds = [Sound(name=sdef.name) for sdef in script.sounds]
    return groups, sounds


def render_pool(pool: TilePool, columns: int = 16) -> Image.Image:
    """Tile sheet of a pool, in index order, for eyeballing dedup results."""
    count = len(pool)
    cols = max(1, min(columns, count))
    rows = max(1, (count + cols - 1) // cols)
    sheet = np.zeros((rows * TILE_SIZE, cols * TILE_SIZE), dtype=np.uint16)
    for i, tile in enumerate(pool):
        y, x = divmod(i, cols)
        block = np.frombuffer(tile.pixels, dtype="<u2").reshape(TILE_SIZE, TILE_SIZE)
        sheet[y * TILE_SIZE:(y + 1) * TILE_SIZE, x * TILE_SIZE:(x + 1) * TILE_SIZE] = block
    return Image.fromarray(rgb565_to_rgb(sheet))

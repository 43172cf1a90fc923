#!/usr/bin/env python3
"""
cemit.py - Small text helpers for generated C/C++ sources.

  - derive_guard_name()   include-guard token from an output filename
  - format_byte_array()   0xHH, literal rows, 16 per line
  - format_tile_indices() per-frame 0xHHHH, rows for tile index arrays
"""

from __future__ import annotations

from typing import List, Sequence

INDENT = "    "
BYTES_PER_LINE = 16


def derive_guard_name(filename: str) -> str:
    # Letters are kept (upper-cased), every run of anything else becomes one '_'.
    prev = "_"
    guard = prev
    for ch in filename:
        if ch.isascii() and ch.isalpha():
            prev = ch.upper()
            guard += prev
        elif prev != "_":
            prev = "_"
            guard += prev
    return guard


def format_byte_array(data: bytes, indent: str = INDENT) -> str:
    out: List[str] = [indent]
    for i, b in enumerate(data):
        if i and not (i % BYTES_PER_LINE):
            out.append("\n" + indent)
        out.append(f"0x{b:02x},")
    out.append("\n")
    return "".join(out)


def format_tile_indices(frames: Sequence[Sequence[int]], width: int, indent: str = INDENT) -> str:
    """One comment line per frame, then one row of indices per grid row."""
    if width <= 0:
        raise ValueError(f"width must be positive, got {width}")
    out: List[str] = []
    for f, indices in enumerate(frames):
        out.append(f"{indent}// Frame {f}\n")
        for row in range(0, len(indices), width):
            out.append(indent + "".join(f"0x{i:04x}," for i in indices[row:row + width]) + "\n")
    return "".join(out)

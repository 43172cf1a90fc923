#!/usr/bin/env python3
"""
asset_script.py - Parser for .assets build scripts.

Format:
  ; comment
  GROUP name=GameAssets
    IMAGE Background file=images/bg.png
    IMAGE Coin file=images/coin.png pinned=1 frame=8x8
  END
  SOUND Jump file=sounds/jump.raw

Names must be C identifiers and unique across the whole script, together
with the symbols generated from them: a group G also defines GID, GID_int and
G_data, and a tiled image I also defines I_tiles. frame= is in pixels and
defaults to the whole image; frames are cut left to right, then top to bottom.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple


class AssetScriptError(Exception):
    def __init__(self, path: str, line: int, col: int, message: str):
        super().__init__(message)
        self.path = path
        self.line = line
        self.col = col
        self.message = message


TOKEN_KV = re.compile(r'(\w+)=(".*?"|\S+)')
IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Suffixes of the extra symbols cppwriter defines for a name.
GROUP_SYMBOL_SUFFIXES = ("ID", "ID_int", "_data")
TILED_IMAGE_SYMBOL_SUFFIXES = ("_tiles",)


@dataclass
class ImageDef:
    name: str
    file: str                 # resolved against the script directory
    pinned: bool = False
    frame_w: int = 0          # pixels, 0 = whole image
    frame_h: int = 0
    line: int = 0


@dataclass
class GroupDef:
    name: str
    images: List[ImageDef] = field(default_factory=list)
    line: int = 0


@dataclass
class SoundDef:
    name: str
    file: str = ""
    line: int = 0


@dataclass
class AssetScript:
    path: str
    groups: List[GroupDef] = field(default_factory=list)
    sounds: List[SoundDef] = field(default_factory=list)


def strip_comment(line: str) -> str:
    if ";" in line:
        return line.split(";", 1)[0].rstrip()
    return line.rstrip()


def unquote(s: str) -> str:
    s = s.strip()
    if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
        return s[1:-1]
    return s


def parse_kv(line: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for m in TOKEN_KV.finditer(line):
        out[m.group(1)] = unquote(m.group(2))
    return out


def parse_bool(s: str) -> bool:
    key = s.strip().lower()
    if key in ("1", "true", "yes", "on"):
        return True
    if key in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Expected a boolean, got {s}")


def parse_size(s: str) -> Tuple[int, int]:
    size = s.strip().lower()
    if "x" not in size:
        raise ValueError(f"Size must look like 8x8: {s}")
    w, h = size.split("x", 1)
    w_i, h_i = int(w), int(h)
    if w_i <= 0 or h_i <= 0:
        raise ValueError(f"Size must be positive: {s}")
    return w_i, h_i


def parts_rest(line: str) -> str:
    """Everything after the keyword and the name."""
    parts = line.split(None, 2)
    return parts[2] if len(parts) > 2 else ""


def _col_for_token(line: str, token: str) -> int:
    if not token:
        return 1
    idx = line.find(token)
    return idx + 1 if idx >= 0 else 1


def _col_for_name(line: str) -> int:
    """Column of the token after the keyword."""
    m = re.match(r"\s*\S+\s+", line)
    return m.end() + 1 if m else 1


def _col_for_kv_value(line: str, key: str) -> int:
    if not key:
        return 1
    m = re.search(rf'(?<!\w){re.escape(key)}\s*=\s*(".*?"|\S+)', line)
    if not m:
        return _col_for_token(line, key)
    return m.start(1) + 1


def parse_asset_script(path: str, error_cb: Optional[Callable[[str, int, int], None]] = None) -> AssetScript:
    with open(path, "r", encoding="utf-8") as f:
        raw = f.readlines()

    lines: List[Tuple[int, str, str]] = []
    for idx, ln in enumerate(raw, 1):
        raw_line = strip_comment(ln).rstrip("\n")
        s = raw_line.strip()
        if s:
            lines.append((idx, raw_line, s))

    def err(message: str, line_no: int = 1, col: int = 1) -> None:
        if error_cb:
            error_cb(message, line_no, col)
            return
        raise AssetScriptError(path, line_no, col, message)

    base_dir = Path(path).absolute().parent
    script = AssetScript(path=path)
    group: Optional[GroupDef] = None
    # Every C symbol the writer will emit, including the ones derived from a
    # name (GID, GID_int, G_data, I_tiles).
    names: Dict[str, int] = {}

    def claim_name(name: str, line_no: int, col: int, derived: Tuple[str, ...] = ()) -> bool:
        if not IDENT_RE.match(name):
            err(f"Name must be a C identifier: {name}", line_no, col)
            return False
        symbols = [name] + [name + suffix for suffix in derived]
        for symbol in symbols:
            if symbol in names:
                err(f"Duplicate name {symbol} (first defined on line {names[symbol]})", line_no, col)
                return False
        for symbol in symbols:
            names[symbol] = line_no
        return True

    for line_no, raw_line, line in lines:
        parts = line.split()
        head = parts[0]

        if head == "END":
            if group is None:
                err("END without GROUP", line_no, _col_for_token(raw_line, "END"))
                continue
            script.groups.append(group)
            group = None
            continue

        if head == "GROUP":
            if group is not None:
                err(f"GROUP {group.name} is missing END", line_no, _col_for_token(raw_line, "GROUP"))
                script.groups.append(group)
            kv = parse_kv(line)
            name = kv.get("name", "")
            if not name and len(parts) > 1 and "=" not in parts[1]:
                name = parts[1]
            if not name:
                err("GROUP requires name=", line_no, _col_for_token(raw_line, "GROUP"))
                group = GroupDef(name="", line=line_no)
                continue
            col = _col_for_kv_value(raw_line, "name") if "name" in kv else _col_for_name(raw_line)
            claim_name(name, line_no, col, GROUP_SYMBOL_SUFFIXES)
            group = GroupDef(name=name, line=line_no)
            continue

        if head == "IMAGE":
            if group is None:
                err("IMAGE must be inside a GROUP ... END block", line_no, _col_for_token(raw_line, "IMAGE"))
                continue
            if len(parts) < 2 or "=" in parts[1]:
                err("IMAGE requires a name", line_no, _col_for_token(raw_line, "IMAGE"))
                continue
            name = parts[1]
            kv = parse_kv(parts_rest(line))
            if not IDENT_RE.match(name):
                err(f"Name must be a C identifier: {name}", line_no, _col_for_name(raw_line))
                continue
            if "file" not in kv:
                err(f"IMAGE {name} requires file=", line_no, _col_for_token(raw_line, "IMAGE"))
                continue
            image = ImageDef(name=name, file=os.path.normpath(base_dir / kv["file"]), line=line_no)
            if "pinned" in kv:
                try:
                    image.pinned = parse_bool(kv["pinned"])
                except ValueError as e:
                    err(str(e), line_no, _col_for_kv_value(raw_line, "pinned"))
                    continue
            if "frame" in kv:
                try:
                    image.frame_w, image.frame_h = parse_size(kv["frame"])
                except ValueError as e:
                    err(str(e), line_no, _col_for_kv_value(raw_line, "frame"))
                    continue
            derived = () if image.pinned else TILED_IMAGE_SYMBOL_SUFFIXES
            if not claim_name(name, line_no, _col_for_name(raw_line), derived):
                continue
            group.images.append(image)
            continue

        if head == "SOUND":
            if group is not None:
                err("SOUND must be outside GROUP blocks", line_no, _col_for_token(raw_line, "SOUND"))
                continue
            if len(parts) < 2 or "=" in parts[1]:
                err("SOUND requires a name", line_no, _col_for_token(raw_line, "SOUND"))
                continue
            name = parts[1]
            if not claim_name(name, line_no, _col_for_name(raw_line)):
                continue
            kv = parse_kv(parts_rest(line))
            file = kv.get("file", "")
            if file:
                file = os.path.normpath(base_dir / file)
            script.sounds.append(SoundDef(name=name, file=file, line=line_no))
            continue

        err(f"Unexpected line: {line}", line_no, 1)

    if group is not None:
        err(f"GROUP {group.name} is missing END", group.line, 1)
        script.groups.append(group)

    return script

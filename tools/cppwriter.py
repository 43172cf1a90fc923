#!/usr/bin/env python3
"""
cppwriter.py - Write encoded asset records as a C++ header/source pair.

The header carries one extern per public symbol inside an include guard; the
source carries the matching definitions. AssetWriter pushes every record to
both files back to back, so the two stay symbol-for-symbol in step.

A sink whose file cannot be opened reports the error once and then ignores
all writes; its companion keeps going.

The include guard comes from the header's file name alone, so the generated
text does not depend on where the build runs. Two headers with the same file
name in different directories get the same guard and cannot both be
included in one translation unit.
"""

from __future__ import annotations

import os
import sys
from typing import Callable, List, Optional

from asset_model import Group, Sound
from cemit import INDENT, derive_guard_name, format_byte_array, format_tile_indices
from container import (
    GroupDataRecord,
    GroupHandleRecord,
    GroupIDRecord,
    IdAllocator,
    PinnedImageRecord,
    Record,
    SoundRecord,
    TiledImageRecord,
    encode_group,
    encode_sound,
)

PREAMBLE = (
    "/*\n"
    " * Generated by assetc. Do not edit by hand.\n"
    " */\n"
    "\n"
    "#include <sifteo/asset.h>\n"
)


def print_error(message: str) -> None:
    print(f"error: {message}", file=sys.stderr)


class OutputSink:
    """One output file. The write_* hooks do nothing here; subclasses fill in
    the ones their file needs."""

    def __init__(self, path: Optional[str], error_cb: Optional[Callable[[str], None]] = None):
        self.path = path
        self.error_cb = error_cb or print_error
        self._stream = None
        self.failed = False

        if path:
            try:
                self._stream = open(path, "w", encoding="utf-8")
            except OSError as e:
                self.failed = True
                self.error_cb(f"Error opening output file '{path}': {e.strerror or e}")

        if self.is_open:
            self.head()

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def write(self, text: str) -> None:
        if self._stream is not None and text:
            self._stream.write(text)

    def head(self) -> None:
        self.write(PREAMBLE)

    def foot(self) -> None:
        pass

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self.foot()
        finally:
            self._stream.close()
            self._stream = None

    def write_record(self, record: Record) -> None:
        if isinstance(record, GroupIDRecord):
            self.write_group_id(record)
        elif isinstance(record, GroupDataRecord):
            self.write_group_data(record)
        elif isinstance(record, GroupHandleRecord):
            self.write_group_handle(record)
        elif isinstance(record, PinnedImageRecord):
            self.write_pinned_image(record)
        elif isinstance(record, TiledImageRecord):
            self.write_tiled_image(record)
        elif isinstance(record, SoundRecord):
            self.write_sound(record)
        else:
            raise TypeError(f"Unhandled record type: {type(record).__name__}")

    def write_group_id(self, rec: GroupIDRecord) -> None:
        pass

    def write_group_data(self, rec: GroupDataRecord) -> None:
        pass

    def write_group_handle(self, rec: GroupHandleRecord) -> None:
        pass

    def write_pinned_image(self, rec: PinnedImageRecord) -> None:
        pass

    def write_tiled_image(self, rec: TiledImageRecord) -> None:
        pass

    def write_sound(self, rec: SoundRecord) -> None:
        pass


class DeclarationSink(OutputSink):
    def __init__(self, path: Optional[str], error_cb: Optional[Callable[[str], None]] = None):
        self.guard_name = derive_guard_name(os.path.basename(path)) if path else "_"
        super().__init__(path, error_cb)

    def head(self) -> None:
        super().head()
        self.write(
            "\n"
            f"#ifndef {self.guard_name}\n"
            f"#define {self.guard_name}\n"
            "\n"
        )

    def foot(self) -> None:
        self.write(
            "\n"
            f"#endif  // {self.guard_name}\n"
        )
        super().foot()

    def write_group_id(self, rec: GroupIDRecord) -> None:
        self.write(f"extern Sifteo::AssetGroupID {rec.name}ID;\n")

    def write_group_data(self, rec: GroupDataRecord) -> None:
        # static in the source file, nothing to declare
        pass

    def write_group_handle(self, rec: GroupHandleRecord) -> None:
        self.write(f"extern Sifteo::AssetGroup {rec.name};\n")

    def write_pinned_image(self, rec: PinnedImageRecord) -> None:
        self.write(f"extern const Sifteo::PinnedAssetImage {rec.name};\n")

    def write_tiled_image(self, rec: TiledImageRecord) -> None:
        self.write(f"extern const Sifteo::AssetImage {rec.name};\n")

    def write_sound(self, rec: SoundRecord) -> None:
        self.write(f"extern _SYSAudioModuleID {rec.name};\n")


class DefinitionSink(OutputSink):
    def write_group_id(self, rec: GroupIDRecord) -> None:
        name = rec.name
        self.write(
            f"\nstatic uint32_t {name}ID_int = {rec.module_id};\n"
            f"Sifteo::AssetGroupID {name}ID = {{{{ {name}ID_int, (uint32_t)0, (uint32_t)0, {name}ID.cubes }}}};\n"
        )

    def write_group_data(self, rec: GroupDataRecord) -> None:
        h = rec.header
        self.write(
            "\n"
            "static const struct {\n"
            f"{INDENT}struct _SYSAssetGroupHeader hdr;\n"
            f"{INDENT}uint8_t data[{h.data_size}];\n"
            f"}} {rec.name}_data = {{{{\n"
            f"{INDENT}/* hdrSize   */ sizeof(struct _SYSAssetGroupHeader),\n"
            f"{INDENT}/* reserved  */ {h.reserved},\n"
            f"{INDENT}/* numTiles  */ {h.num_tiles},\n"
            f"{INDENT}/* dataSize  */ {h.data_size},\n"
            f"{INDENT}/* signature */ 0x{h.signature:016x},\n"
            "}, {\n"
        )
        self.write(format_byte_array(rec.data))
        self.write("}};\n")

    def write_group_handle(self, rec: GroupHandleRecord) -> None:
        name = rec.name
        self.write(f"\nSifteo::AssetGroup {name} = {{{{ &{name}_data.hdr, {name}.cubes }}}};\n")

    def write_pinned_image(self, rec: PinnedImageRecord) -> None:
        self.write(
            "\n"
            f"Sifteo::PinnedAssetImage {rec.name} = {{\n"
            f"{INDENT}/* width   */ {rec.width},\n"
            f"{INDENT}/* height  */ {rec.height},\n"
            f"{INDENT}/* frames  */ {rec.frames},\n"
            f"{INDENT}/* index   */ {rec.index},\n"
            "};\n"
        )

    def write_tiled_image(self, rec: TiledImageRecord) -> None:
        # Uncompressed tile grid, one u16 pool index per tile.
        self.write(f"\nstatic const uint16_t {rec.tiles_name}[] = {{\n")
        self.write(format_tile_indices(rec.frame_tiles(), rec.width))
        self.write(
            "};\n"
            "\n"
            f"Sifteo::AssetImage {rec.name} = {{\n"
            f"{INDENT}/* width   */ {rec.width},\n"
            f"{INDENT}/* height  */ {rec.height},\n"
            f"{INDENT}/* frames  */ {rec.frames},\n"
            f"{INDENT}/* tiles   */ {rec.tiles_name},\n"
            "};\n"
        )

    def write_sound(self, rec: SoundRecord) -> None:
        self.write(
            "\n"
            f"_SYSAudioModuleID {rec.name} = {{\n"
            f"{INDENT}{rec.module_id},\n"
            f"{INDENT}0,\n"
            f"{INDENT}0,\n"
            f"{INDENT}{rec.kind.name.capitalize()},\n"
            "};\n"
        )


class AssetWriter:
    """Header + source writer pair.

    Entities are fully encoded before anything is written, then each record
    goes to the header and the source in the same call. Use as a context
    manager so both files get their closing text on every exit path.
    """

    def __init__(
        self,
        header_path: Optional[str],
        source_path: Optional[str],
        ids: Optional[IdAllocator] = None,
        error_cb: Optional[Callable[[str], None]] = None,
    ):
        self.ids = ids or IdAllocator()
        self.records: List[Record] = []
        self.header = DeclarationSink(header_path, error_cb)
        try:
            self.source = DefinitionSink(source_path, error_cb)
        except BaseException:
            self.header.close()
            raise

    def __enter__(self) -> "AssetWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _emit(self, record: Record) -> None:
        self.header.write_record(record)
        self.source.write_record(record)
        self.records.append(record)

    def write_group(self, group: Group) -> None:
        for record in encode_group(group, self.ids):
            self._emit(record)

    def write_sound(self, sound: Sound) -> None:
        self._emit(encode_sound(sound, self.ids))

    def close(self) -> None:
        try:
            self.header.close()
        finally:
            self.source.close()

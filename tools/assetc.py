#!/usr/bin/env python3
"""
assetc.py - Compile an .assets script into a C++ header/source pair that embeds
the asset group containers.

Outputs:
  - .h        extern declarations, wrapped in an include guard
  - .cpp      group containers (header + tile data), images, sounds
  - .json     Optional debug dump of the encoded records
  - .bin      Optional raw container (header + data) per group
  - .png      Optional tile pool preview sheet per group

Usage:
  python tools/assetc.py assets/game.assets
  python tools/assetc.py assets/game.assets --header gen/include/assets.gen.h \
      --source gen/src/assets.gen.cpp --json AUTO --id-mode sequential

Exit status is 1 for script errors and broken asset models. An output file
that cannot be opened is reported but does not fail the run.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from asset_model import AssetModelError
from asset_script import AssetScriptError, parse_asset_script
from container import ID_MODES, GroupDataRecord, IdAllocator, record_debug
from cppwriter import AssetWriter
from gen_paths import ANALYSIS_ROOT, GEN_ROOT
from tiler import build_model, render_pool


def _ensure_parent(path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("input", help="Input asset script (.assets)")
    ap.add_argument("--header", default="", help="Output declarations (.h)")
    ap.add_argument("--source", default="", help="Output definitions (.cpp)")
    ap.add_argument("--json", default="", help="Output debug .json (AUTO for the analysis dir)")
    ap.add_argument("--bin-dir", default="", help="Directory for raw per-group containers (.bin)")
    ap.add_argument(
        "--out-debug",
        default=str(Path(ANALYSIS_ROOT) / "assets"),
        help="Output directory for AUTO .json and preview PNGs",
    )
    ap.add_argument("--preview", action="store_true", help="Write tile pool preview PNGs to the analysis dir")
    ap.add_argument(
        "--id-mode",
        default="fixed",
        choices=ID_MODES,
        help="Module ids: fixed (every group 1, every sound 2) or sequential",
    )
    args = ap.parse_args(argv)

    base_name = Path(args.input).stem
    if not args.header:
        args.header = str(Path(GEN_ROOT) / "include" / f"{base_name}.gen.h")
    if not args.source:
        args.source = str(Path(GEN_ROOT) / "src" / f"{base_name}.gen.cpp")
    if args.json == "AUTO":
        args.json = str(Path(args.out_debug) / f"{base_name}.json")

    try:
        script = parse_asset_script(args.input)
        groups, sounds = build_model(script)
    except AssetScriptError as e:
        path = Path(e.path).resolve()
        print(f"{path}:{e.line}:{e.col}: error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        path = Path(args.input).resolve()
        print(f"{path}:1:1: error: {e}", file=sys.stderr)
        sys.exit(1)

    # Missing directories are created; a path that still cannot be opened
    # leaves that sink inert.
    for path in (args.header, args.source):
        try:
            _ensure_parent(path)
        except OSError:
            pass

    try:
        with AssetWriter(args.header, args.source, ids=IdAllocator(args.id_mode)) as writer:
            for group in groups:
                writer.write_group(group)
            for sound in sounds:
                writer.write_sound(sound)
    except AssetModelError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)

    for sink in (writer.header, writer.source):
        if not sink.failed:
            print(f"Wrote {sink.path}")

    if args.bin_dir:
        bin_dir = Path(args.bin_dir)
        bin_dir.mkdir(parents=True, exist_ok=True)
        for record in writer.records:
            if not isinstance(record, GroupDataRecord):
                continue
            blob = record.pack()
            out = bin_dir / f"{record.name}.bin"
            out.write_bytes(blob)
            print(f"Wrote {out} ({len(blob)} bytes)")

    if args.preview:
        out_dir = Path(args.out_debug) / base_name
        out_dir.mkdir(parents=True, exist_ok=True)
        for group in groups:
            out = out_dir / f"{group.name}_pool.png"
            render_pool(group.pool).save(out)
            print(f"Wrote {out}")

    if args.json:
        debug = {
            "script": args.input,
            "id_mode": args.id_mode,
            "header": args.header,
            "source": args.source,
            "groups": [
                {
                    "name": g.name,
                    "num_tiles": len(g.pool),
                    "data_size": len(g.load_stream),
                    "signature": f"0x{g.signature:016x}",
                }
                for g in groups
            ],
            "records": [record_debug(r) for r in writer.records],
        }
        _ensure_parent(args.json)
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(debug, f, indent=2)
        print(f"Wrote {args.json}")


if __name__ == "__main__":
    main()

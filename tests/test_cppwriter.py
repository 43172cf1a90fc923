import re

import pytest

from asset_model import AssetModelError, Group, Image, Sound, Tile, TileGrid, TilePool
from cemit import derive_guard_name
from container import IdAllocator, encode_group
from cppwriter import PREAMBLE, AssetWriter, DeclarationSink, DefinitionSink, OutputSink

EXTERN_RE = re.compile(r"^extern (?:const )?[\w:]+ (\w+);$", re.MULTILINE)
PUBLIC_DEF_RE = re.compile(r"^(?:Sifteo::\w+|_SYSAudioModuleID) (\w+) = ", re.MULTILINE)


def _tile(n: int) -> Tile:
    return Tile(n.to_bytes(2, "little") * 64)


def _make_group(name: str = "Sprites") -> Group:
    pool = TilePool()
    coin = [_tile(100), _tile(101), _tile(102)]
    pool.add_run(coin)
    wall = [_tile(i) for i in range(4)]
    for t in wall:
        pool.add(t)
    load_stream = b"".join(t.pixels for t in pool)
    return Group(
        name=name,
        signature=0xDEADBEEF00C0FFEE,
        load_stream=load_stream,
        pool=pool,
        images=[
            Image("Coin", frames=[TileGrid(1, 1, [t]) for t in coin], pinned=True),
            Image("Wall", frames=[TileGrid(2, 2, wall)]),
        ],
    )


def _write(header, source, groups, sounds, **kw):
    with AssetWriter(str(header) if header else None, str(source) if source else None, **kw) as writer:
        for g in groups:
            writer.write_group(g)
        for s in sounds:
            writer.write_sound(s)
    return writer


def test_declarations_and_definitions_pair_up(tmp_path):
    header = tmp_path / "assets.gen.h"
    source = tmp_path / "assets.gen.cpp"
    _write(header, source, [_make_group()], [Sound("Jump"), Sound("Land")])

    h = header.read_text()
    c = source.read_text()
    externs = EXTERN_RE.findall(h)
    defs = PUBLIC_DEF_RE.findall(c)
    # group id + group + 2 images + 2 sounds
    assert externs == ["SpritesID", "Sprites", "Coin", "Wall", "Jump", "Land"]
    assert defs == externs


def test_pairing_over_several_groups(tmp_path):
    header = tmp_path / "a.h"
    source = tmp_path / "a.cpp"
    groups = [_make_group("First"), Group("Second", 0, b"", TilePool())]
    _write(header, source, groups, [Sound("Beep")], ids=IdAllocator("sequential"))
    externs = EXTERN_RE.findall(header.read_text())
    assert externs == PUBLIC_DEF_RE.findall(source.read_text())
    assert len(externs) == 2 * len(groups) + 2 + 1


def test_helper_symbols_are_static(tmp_path):
    header = tmp_path / "a.h"
    source = tmp_path / "a.cpp"
    _write(header, source, [_make_group()], [])
    c = source.read_text()
    assert "static uint32_t SpritesID_int = 1;" in c
    assert "} Sprites_data = {{" in c
    assert "static const uint16_t Wall_tiles[] = {" in c
    h = header.read_text()
    assert "Sprites_data" not in h
    assert "Wall_tiles" not in h
    assert "SpritesID_int" not in h


def test_header_guard(tmp_path):
    header = tmp_path / "assets.gen.h"
    _write(header, None, [], [])
    text = header.read_text()
    guard = derive_guard_name("assets.gen.h")
    assert guard == "_ASSETS_GEN_H"
    assert text.startswith("/*\n * Generated by assetc.")
    assert f"#ifndef {guard}\n#define {guard}\n" in text
    assert text.endswith(f"\n#endif  // {guard}\n")


def test_source_contents(tmp_path):
    source = tmp_path / "a.cpp"
    _write(None, source, [_make_group()], [Sound("Jump")])
    c = source.read_text()
    assert "#include <sifteo/asset.h>\n" in c
    assert "Sifteo::AssetGroupID SpritesID = {{ SpritesID_int, (uint32_t)0, (uint32_t)0, SpritesID.cubes }};" in c
    assert "Sifteo::AssetGroup Sprites = {{ &Sprites_data.hdr, Sprites.cubes }};" in c
    assert "    /* numTiles  */ 7,\n" in c
    assert f"    /* dataSize  */ {7 * 128},\n" in c
    assert "    /* signature */ 0xdeadbeef00c0ffee,\n" in c
    assert "    /* frames  */ 3,\n    /* index   */ 0,\n" in c
    assert "    // Frame 0\n    0x0003,0x0004,\n    0x0005,0x0006,\n" in c
    assert "_SYSAudioModuleID Jump = {\n    2,\n    0,\n    0,\n    Sample,\n};\n" in c


def test_declaration_open_failure_leaves_source_intact(tmp_path):
    errors = []
    bad_header = tmp_path / "missing" / "dir" / "a.h"
    source = tmp_path / "a.cpp"
    good_header = tmp_path / "ref.h"
    ref_source = tmp_path / "ref.cpp"

    writer = _write(bad_header, source, [_make_group()], [Sound("Jump")], error_cb=errors.append)
    _write(good_header, ref_source, [_make_group()], [Sound("Jump")])

    assert len(errors) == 1
    assert str(bad_header) in errors[0]
    assert writer.header.failed
    assert not writer.header.is_open
    assert not bad_header.exists()
    assert source.read_text() == ref_source.read_text()


def test_definition_open_failure_leaves_header_intact(tmp_path):
    errors = []
    header = tmp_path / "assets.gen.h"
    _write(header, tmp_path / "nope" / "a.cpp", [_make_group()], [], error_cb=errors.append)
    assert len(errors) == 1
    assert EXTERN_RE.findall(header.read_text()) == ["SpritesID", "Sprites", "Coin", "Wall"]


def test_inert_sink_ignores_writes(tmp_path):
    errors = []
    sink = DefinitionSink(str(tmp_path / "x" / "y.cpp"), error_cb=errors.append)
    sink.write("anything")
    sink.close()
    sink.close()
    assert len(errors) == 1


def test_no_path_means_no_output():
    sink = DeclarationSink(None)
    assert not sink.is_open
    assert not sink.failed
    sink.close()


def test_files_closed_on_model_error(tmp_path):
    header = tmp_path / "assets.gen.h"
    source = tmp_path / "assets.gen.cpp"
    broken = Group("Broken", 0, b"", TilePool(), images=[Image("Empty")])
    with pytest.raises(AssetModelError):
        _write(header, source, [_make_group(), broken], [])

    h = header.read_text()
    assert h.endswith("#endif  // _ASSETS_GEN_H\n")
    # the broken group was rejected before any of its records were written
    assert "Broken" not in h
    assert "Broken" not in source.read_text()
    assert EXTERN_RE.findall(h) == PUBLIC_DEF_RE.findall(source.read_text())


def test_unknown_record_type_is_rejected(tmp_path):
    sink = DefinitionSink(str(tmp_path / "a.cpp"))
    try:
        with pytest.raises(TypeError):
            sink.write_record("not a record")
    finally:
        sink.close()


def test_empty_tiled_frame_writes_nothing(tmp_path):
    header = tmp_path / "assets.gen.h"
    source = tmp_path / "assets.gen.cpp"
    blank = Group("Blank", 0, b"", TilePool(), images=[Image("Empty", frames=[TileGrid(0, 0, [])])])
    with pytest.raises(AssetModelError):
        _write(header, source, [_make_group(), blank], [])

    h = header.read_text()
    c = source.read_text()
    assert "Empty" not in h
    assert "Empty" not in c
    assert EXTERN_RE.findall(h) == PUBLIC_DEF_RE.findall(c)


def test_header_guard_uses_file_name_only(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    first = DeclarationSink(str(tmp_path / "a" / "assets.gen.h"))
    second = DeclarationSink(str(tmp_path / "b" / "assets.gen.h"))
    first.close()
    second.close()
    assert first.guard_name == second.guard_name == "_ASSETS_GEN_H"


def test_base_sink_hooks_write_nothing(tmp_path):
    path = tmp_path / "plain.txt"
    sink = OutputSink(str(path))
    for record in encode_group(_make_group(), IdAllocator()):
        sink.write_record(record)
    sink.close()
    assert path.read_text() == PREAMBLE

import pytest

from asset_model import TILE_BYTES, AssetModelError, Image, Tile, TileGrid, TilePool


def _tile(n: int) -> Tile:
    return Tile(n.to_bytes(2, "little") * 64)


def test_tiles_compare_by_content():
    assert _tile(3) == _tile(3)
    assert hash(_tile(3)) == hash(Tile(bytes(_tile(3).pixels)))
    assert _tile(3) != _tile(4)


def test_tile_size_checked():
    with pytest.raises(AssetModelError):
        Tile(b"\x00" * (TILE_BYTES - 1))


def test_pool_dedups_and_keeps_indices():
    pool = TilePool()
    assert pool.add(_tile(1)) == 0
    assert pool.add(_tile(2)) == 1
    assert pool.add(_tile(1)) == 0
    assert len(pool) == 2
    assert list(pool) == [_tile(1), _tile(2)]
    assert pool.index(_tile(2)) == 1
    assert pool[1] == _tile(2)


def test_pool_index_of_missing_tile():
    pool = TilePool()
    pool.add(_tile(1))
    assert _tile(7) not in pool
    with pytest.raises(AssetModelError):
        pool.index(_tile(7))


def test_add_run_appends_contiguously():
    pool = TilePool()
    pool.add(_tile(0))
    assert pool.add_run([_tile(10), _tile(11), _tile(12)]) == 1
    assert [pool.index(_tile(n)) for n in (10, 11, 12)] == [1, 2, 3]


def test_add_run_reuses_identical_run():
    pool = TilePool()
    pool.add_run([_tile(10), _tile(11)])
    pool.add(_tile(20))
    assert pool.add_run([_tile(10), _tile(11)]) == 0
    assert len(pool) == 3


def test_add_run_rejects_broken_contiguity():
    pool = TilePool()
    pool.add(_tile(10))
    pool.add(_tile(5))
    with pytest.raises(AssetModelError):
        pool.add_run([_tile(10), _tile(11)])
    with pytest.raises(AssetModelError):
        pool.add_run([_tile(11), _tile(5)])
    with pytest.raises(AssetModelError):
        pool.add_run([_tile(30), _tile(30)])
    with pytest.raises(AssetModelError):
        pool.add_run([])
    # nothing was added by the failed runs
    assert len(pool) == 2


def test_grid_access():
    grid = TileGrid(2, 2, [_tile(0), _tile(1), _tile(2), _tile(3)])
    assert grid.tile_at(1, 0) == _tile(1)
    assert grid.tile_at(0, 1) == _tile(2)
    with pytest.raises(IndexError):
        grid.tile_at(2, 0)


def test_grid_tile_count_checked():
    with pytest.raises(AssetModelError):
        TileGrid(2, 2, [_tile(0)])


def test_image_size_follows_first_frame():
    image = Image("A", frames=[TileGrid(3, 1, [_tile(0)] * 3)])
    assert (image.width, image.height) == (3, 1)
    assert (Image("B").width, Image("B").height) == (0, 0)

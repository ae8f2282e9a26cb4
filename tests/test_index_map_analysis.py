import pytest

from index_map_analysis import MappedShape, check_index_map, forward_symbolic_shape, map_shape
from ir_errors import SchemaError, ShapeError
from tensor_ir import DimExpr, IndexMap, Symbol, as_shape


def _split_inner(factor: int) -> IndexMap:
    return IndexMap.from_func(2, lambda i, j: (i // factor, j, i % factor))


def test_map_shape_exact_tiling():
    assert map_shape("layout_transform", _split_inner(4), (16, 3)) == MappedShape(shape=(4, 3, 4), padded=False)


def test_map_shape_detects_padding():
    assert map_shape("layout_transform", _split_inner(4), (10, 3)) == MappedShape(shape=(3, 3, 4), padded=True)


def test_map_shape_permutation():
    index_map = IndexMap.from_func(3, lambda i, j, k: (k, i, j))
    assert map_shape("layout_transform", index_map, (2, 3, 5)) == MappedShape(shape=(5, 2, 3), padded=False)


def test_map_shape_affine_offset():
    index_map = IndexMap.from_func(1, lambda i: (i + 2,))
    assert map_shape("layout_transform", index_map, (4,)) == MappedShape(shape=(6,), padded=True)


def test_map_shape_flattening():
    index_map = IndexMap.from_func(2, lambda i, j: (i * 3 + j,))
    assert map_shape("layout_transform", index_map, (4, 3)) == MappedShape(shape=(12,), padded=False)


def test_map_shape_empty_domain():
    assert map_shape("layout_transform", _split_inner(4), (0, 3)) is None


def test_map_shape_rejects_negative_index():
    index_map = IndexMap.from_func(1, lambda i: (i - 1,))
    with pytest.raises(ShapeError, match="negative index"):
        map_shape("layout_transform", index_map, (4,))


def test_map_shape_rejects_non_affine_expression():
    index_map = IndexMap.from_func(2, lambda i, j: (i * j,))
    with pytest.raises(SchemaError, match="not quasi-affine"):
        map_shape("layout_transform", index_map, (4, 3))


def test_check_index_map_arity_and_stray_axes():
    with pytest.raises(ShapeError, match="takes 2 axes but the input has rank 3"):
        check_index_map("layout_transform", _split_inner(4), 3)
    i, k = Symbol("i"), Symbol("k")
    stray = IndexMap(in_axes=(i,), out=(DimExpr(0, {k: 1}),))
    with pytest.raises(ShapeError, match=r"references axes \['k'\]"):
        check_index_map("layout_transform", stray, 1)


def test_forward_symbolic_shape():
    permute = IndexMap.from_func(2, lambda i, j: (j, i))
    assert forward_symbolic_shape(permute, as_shape(("n", 4))) == as_shape((4, "n"))
    assert forward_symbolic_shape(_split_inner(4), as_shape(("n", 4))) is None


def test_map_shape_shifted_floor_division():
    index_map = IndexMap.from_func(1, lambda i: (i // 4 + 1, i % 4))
    assert map_shape("layout_transform", index_map, (16,)) == MappedShape(shape=(5, 4), padded=True)


def test_map_shape_recombined_tiles():
    index_map = IndexMap.from_func(1, lambda i: i // 4 * 4 + i % 4)
    assert map_shape("layout_transform", index_map, (16,)) == MappedShape(shape=(16,), padded=False)


def test_map_shape_scaled_remainder():
    index_map = IndexMap.from_func(1, lambda i: (i // 4, 2 * (i % 4)))
    assert map_shape("layout_transform", index_map, (16,)) == MappedShape(shape=(4, 7), padded=True)


def test_map_shape_rejects_colliding_outputs():
    with pytest.raises(ShapeError, match="same output index"):
        map_shape("layout_transform", IndexMap.from_func(2, lambda i, j: (i,)), (4, 3))
    with pytest.raises(ShapeError, match="same output index"):
        map_shape("layout_transform", IndexMap.from_func(1, lambda i: (i % 4,)), (8,))
    assert map_shape("layout_transform", IndexMap.from_func(1, lambda i: (i % 4,)), (4,)) == MappedShape(
        shape=(4,), padded=False
    )


def test_forward_symbolic_shape_needs_a_permutation():
    dropped = IndexMap.from_func(2, lambda i, j: (i,))
    assert forward_symbolic_shape(dropped, as_shape(("n", 4))) is None
    repeated = IndexMap.from_func(2, lambda i, j: (i, i))
    assert forward_symbolic_shape(repeated, as_shape(("n", 4))) is None

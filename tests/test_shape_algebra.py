import pytest
from hypothesis import given
from hypothesis import strategies as st

from ir_errors import ShapeError
from shape_algebra import (
    broadcast_shapes,
    ceil_div,
    check_broadcastable_to,
    exact_div,
    match_dims,
    merge_dims,
    normalize_axes,
    normalize_axis,
    shape_product,
    unify_ndim,
)
from tensor_ir import DimExpr, TensorType, as_shape, dim


def _static_shapes(min_rank: int = 0, max_rank: int = 4, min_dim: int = 0, max_dim: int = 8):
    return st.lists(st.integers(min_dim, max_dim), min_size=min_rank, max_size=max_rank).map(tuple)


@pytest.mark.parametrize("axis, ndim, expected", [(0, 3, 0), (-1, 3, 2), (-3, 3, 0), (2, 3, 2)])
def test_normalize_axis(axis, ndim, expected):
    assert normalize_axis("op", axis, ndim) == expected


@pytest.mark.parametrize("axis, ndim", [(3, 3), (-4, 3), (0, 0)])
def test_normalize_axis_out_of_range(axis, ndim):
    with pytest.raises(ShapeError, match="out of range"):
        normalize_axis("op", axis, ndim)


def test_normalize_axes_rejects_duplicates_after_resolution():
    assert normalize_axes("op", (0, -1), 3) == (0, 2)
    with pytest.raises(ShapeError, match="duplicates"):
        normalize_axes("op", (2, -1), 3)


@given(shape=_static_shapes())
def test_shape_product_matches_numpy_size(shape):
    expected = 1
    for d in shape:
        expected *= d
    assert shape_product(as_shape(shape)) == DimExpr(expected)


def test_exact_div():
    n = dim(n=1)
    assert exact_div(n * 6, DimExpr(3)) == n * 2
    assert exact_div(n * 3, DimExpr(2)) is None
    assert exact_div(n * dim(m=1) * 4, n) == dim(m=4)
    assert exact_div(n + 1, n) is None
    assert exact_div(n + 1, n + 1) == DimExpr(1)
    assert exact_div(DimExpr(12), DimExpr(0)) is None


def test_ceil_div():
    assert ceil_div(DimExpr(10), 3) == DimExpr(4)
    assert ceil_div(DimExpr(0), 3) == DimExpr(0)
    assert ceil_div(dim(n=4), 2) == dim(n=2)
    assert ceil_div(dim(n=1), 2) is None


def test_broadcast_shapes():
    shapes = [as_shape((2, 1, 4)), as_shape((3, 1)), as_shape(())]
    assert broadcast_shapes("op", shapes) == as_shape((2, 3, 4))
    assert broadcast_shapes("op", [as_shape(("n", 1)), as_shape((1, 5))]) == as_shape(("n", 5))
    assert broadcast_shapes("op", [as_shape(("n",)), as_shape((5,))]) is None
    with pytest.raises(ShapeError, match="cannot be broadcast"):
        broadcast_shapes("op", [as_shape((2,)), as_shape((3,))])


def test_check_broadcastable_to():
    assert check_broadcastable_to("op", as_shape((1, 4)), as_shape((3, 2, 4)))
    assert not check_broadcastable_to("op", as_shape(("n",)), as_shape((4,)))
    with pytest.raises(ShapeError, match="neither 1 nor equal"):
        check_broadcastable_to("op", as_shape((3,)), as_shape((5,)))
    with pytest.raises(ShapeError, match="rank"):
        check_broadcastable_to("op", as_shape((1, 1, 1)), as_shape((1, 1)))


def test_match_dims():
    assert match_dims("op", as_shape((2, "n")), as_shape((2, "n")), "inputs")
    assert not match_dims("op", as_shape((2, "n")), as_shape((2, "m")), "inputs")
    assert match_dims("op", as_shape((2, 3)), as_shape((9, 3)), "inputs", skip_axis=0)
    with pytest.raises(ShapeError, match="dimension 1 differs"):
        match_dims("op", as_shape((2, 3)), as_shape((2, 4)), "inputs")
    with pytest.raises(ShapeError, match="rank 2 does not match rank 1"):
        match_dims("op", as_shape((2, 3)), as_shape((2,)), "inputs")


def test_merge_dims_keeps_static_candidates():
    merged, unproven = merge_dims("op", [as_shape(("n", 3)), as_shape((4, "k"))], "inputs")
    assert merged == as_shape((4, 3))
    assert unproven == (0, 1)
    merged, unproven = merge_dims("op", [as_shape(("n", 3)), as_shape(("m", 3))], "inputs", skip_axis=0)
    assert merged == as_shape(("n", 3))
    assert unproven == ()
    assert merge_dims("op", [], "inputs") == ((), ())


def test_merge_dims_compares_every_pair():
    with pytest.raises(ShapeError, match="dimension 0 differs"):
        merge_dims("op", [as_shape(("n",)), as_shape((3,)), as_shape((4,))], "inputs")
    with pytest.raises(ShapeError, match="dimension 0 differs"):
        merge_dims("op", [as_shape(("n",)), as_shape(("m",)), (dim(1, m=1),)], "inputs")


def test_unify_ndim_skips_unknown_rank():
    types = [TensorType(ndim=None), TensorType(shape=(1, 2)), TensorType(ndim=2)]
    assert unify_ndim("op", types, "inputs") == 2
    with pytest.raises(ShapeError, match="same rank"):
        unify_ndim("op", [TensorType(ndim=1), TensorType(ndim=2)], "inputs")


@given(lhs=st.integers(0, 64), rhs=st.integers(1, 8))
def test_exact_div_static(lhs, rhs):
    result = exact_div(DimExpr(lhs), DimExpr(rhs))
    if lhs % rhs:
        assert result is None
    else:
        assert result == DimExpr(lhs // rhs)

import numpy as np
import pytest

from graph_ir import Constant, PrimValue, ShapeExpr, Tuple, TupleGetItem, prim_value, tensor_var
from ir_errors import SchemaError
from tensor_ir import DType, PrimType, ShapeType, TensorType, TupleType, as_shape


def test_constant_derives_type_and_is_read_only():
    source = np.zeros((2, 3), dtype=np.int32)
    const = Constant(source)
    assert const.checked_type == TensorType(DType.INT32, (2, 3))
    source[0, 0] = 7
    assert const.data[0, 0] == 0
    with pytest.raises(ValueError):
        const.data[0, 0] = 1


@pytest.mark.parametrize(
    "value, expected",
    [(True, DType.BOOL), (3, DType.INT64), (np.int32(3), DType.INT64), (0.5, DType.FLOAT32)],
)
def test_prim_value_defaults(value, expected):
    wrapped = prim_value(value)
    assert wrapped.dtype == expected
    assert wrapped.checked_type == PrimType(expected)
    assert prim_value(wrapped) is wrapped


def test_prim_value_rejects_non_scalars():
    with pytest.raises(TypeError):
        prim_value("1")


def test_shape_expr_type():
    shape = ShapeExpr((4, "n"))
    assert shape.values == as_shape((4, "n"))
    assert shape.checked_type == ShapeType(as_shape((4, "n")))


def test_tuple_and_get_item():
    x = tensor_var("x", (2,))
    y = tensor_var("y", (3,), DType.INT32)
    pair = Tuple([x, y])
    assert pair.checked_type == TupleType((x.checked_type, y.checked_type))
    assert TupleGetItem(pair, -1).checked_type == y.checked_type
    with pytest.raises(SchemaError, match="out of range"):
        TupleGetItem(pair, 2)
    with pytest.raises(SchemaError, match="tuple-typed"):
        TupleGetItem(x, 0)


def test_tensor_var_rank_only():
    x = tensor_var("x", None, ndim=3)
    assert x.checked_type == TensorType(DType.FLOAT32, ndim=3)
    assert PrimValue(1, DType.INT32).checked_type == PrimType(DType.INT32)

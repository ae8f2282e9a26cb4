from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np

from build_config import DEFAULT_CONFIG, BuildConfig
from graph_ir import Call, Expr, PrimValue, ShapeExpr, Tuple, prim_value
from ir_errors import SchemaError
from op_registry import get_op
from shape_infer import infer
from tensor_ir import DimLike, DType, IndexMap, TensorType, as_shape


logger = logging.getLogger(__name__)

TensorsLike = Expr | Sequence[Expr]
ShapeLike = Expr | Sequence[DimLike] | int


def _build(name: str, args: Sequence[Expr], config: BuildConfig | None = None, **attr_values: Any) -> Call:
    config = config or DEFAULT_CONFIG
    op = get_op(name)
    attrs = op.make_attrs(**attr_values)
    op.check_args(args)
    result = infer(name, args, attrs, config)
    call = Call(op=op, args=tuple(args), attrs=attrs, checked_type=result.checked_type,
                deferred_checks=result.deferred_checks)
    logger.debug("built %s: %s", name, result.checked_type)
    for check in result.deferred_checks:
        logger.log(config.deferred_check_log_level, "deferred runtime check: %s", check)
    return call


def _tensor_tuple(op: str, value: TensorsLike) -> Expr:
    if isinstance(value, Expr):
        return value
    if isinstance(value, (list, tuple)):
        for k, item in enumerate(value):
            if not isinstance(item, Expr):
                raise SchemaError(op, f"tensor {k} must be an Expr, got {type(item).__name__}")
        return Tuple(tuple(value))
    raise SchemaError(op, f"expects a tuple of tensors, got {type(value).__name__}")


def _shape_expr(op: str, value: ShapeLike) -> Expr:
    if isinstance(value, Expr):
        return value
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        value = (value,)
    if isinstance(value, (str, bytes)) or not isinstance(value, (Sequence, np.ndarray)):
        raise SchemaError(op, f"expects a shape, got {value!r}")
    try:
        return ShapeExpr(as_shape(value))
    except (TypeError, ValueError) as e:
        raise SchemaError(op, f"invalid shape {value!r}: {e}") from e


def _scalar(op: str, value: Any, dtype: DType | None) -> PrimValue:
    if isinstance(value, PrimValue):
        return value
    if isinstance(value, (bool, np.bool_, int, float, np.integer, np.floating)) and dtype is not None:
        if dtype == DType.BOOL:
            return PrimValue(bool(value), dtype)
        if dtype.is_integer:
            return PrimValue(int(value), dtype)
        return PrimValue(float(value), dtype)
    try:
        return prim_value(value)
    except TypeError as e:
        raise SchemaError(op, f"expects a scalar, got {value!r}") from e


def _int_tuple(value: Any) -> Any:
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return (value,)
    return value


def broadcast_to(x: Expr, shape: ShapeLike) -> Call:
    return _build("broadcast_to", [x, _shape_expr("broadcast_to", shape)])


def concat(tensors: TensorsLike, axis: int | None = 0) -> Call:
    return _build("concat", [_tensor_tuple("concat", tensors)], axis=axis)


def expand_dims(x: Expr, axis: int | Sequence[int]) -> Call:
    return _build("expand_dims", [x], axis=_int_tuple(axis))


def flatten(x: Expr) -> Call:
    return _build("flatten", [x])


def layout_transform(
    x: Expr,
    index_map: IndexMap | Callable[..., Sequence],
    pad_value: int | float | PrimValue | None = None,
    axis_separators: Sequence[int] | None = None,
    input_axis_separators: Sequence[int] | None = None,
) -> Call:
    op = "layout_transform"
    x_type = x.checked_type if isinstance(x, Expr) else None
    dtype = x_type.dtype if isinstance(x_type, TensorType) else None
    if not isinstance(index_map, IndexMap) and callable(index_map):
        if not isinstance(x_type, TensorType) or x_type.ndim is None:
            raise SchemaError(op, "a callable index map needs an input of known rank")
        try:
            index_map = IndexMap.from_func(x_type.ndim, index_map)
        except (TypeError, ValueError) as e:
            raise SchemaError(op, f"invalid index map: {e}") from e
    if pad_value is not None:
        pad_value = _scalar(op, pad_value, dtype)
    return _build(
        op,
        [x],
        index_map=index_map,
        pad_value=pad_value,
        axis_separators=axis_separators,
        input_axis_separators=input_axis_separators,
    )


def permute_dims(x: Expr, axes: Sequence[int] | None = None) -> Call:
    return _build("permute_dims", [x], axes=axes)


def reshape(x: Expr, shape: ShapeLike) -> Call:
    return _build("reshape", [x, _shape_expr("reshape", shape)])


def split(x: Expr, indices_or_sections: int | Sequence[int], axis: int = 0) -> Call:
    return _build("split", [x], indices_or_sections=indices_or_sections, axis=axis)


def squeeze(x: Expr, axis: int | Sequence[int] | None = None) -> Call:
    return _build("squeeze", [x], axis=_int_tuple(axis))


def stack(tensors: TensorsLike, axis: int = 0) -> Call:
    return _build("stack", [_tensor_tuple("stack", tensors)], axis=axis)


def collapse_sum_to(data: Expr, shape: ShapeLike) -> Call:
    return _build("collapse_sum_to", [data, _shape_expr("collapse_sum_to", shape)])


def collapse_sum_like(data: Expr, collapse_target: Expr) -> Call:
    return _build("collapse_sum_like", [data, collapse_target])


def repeat(data: Expr, repeats: int, axis: int | None = None) -> Call:
    return _build("repeat", [data], repeats=repeats, axis=axis)


def tile(data: Expr, repeats: int | Sequence[int]) -> Call:
    return _build("tile", [data], repeats=_int_tuple(repeats))


def flip(data: Expr, axis: int) -> Call:
    return _build("flip", [data], axis=axis)


def gather_elements(data: Expr, indices: Expr, axis: int = 0, *, config: BuildConfig | None = None) -> Call:
    return _build("gather_elements", [data, indices], config, axis=axis)


def gather_nd(data: Expr, indices: Expr, batch_dims: int = 0, *, config: BuildConfig | None = None) -> Call:
    return _build("gather_nd", [data, indices], config, batch_dims=batch_dims)


def index_tensor(data: Expr, indices: TensorsLike, *, config: BuildConfig | None = None) -> Call:
    return _build("index_tensor", [data, _tensor_tuple("index_tensor", indices)], config)


def index_put(
    data: Expr,
    indices: TensorsLike,
    values: Expr,
    accumulate: bool = False,
    *,
    config: BuildConfig | None = None,
) -> Call:
    return _build("index_put", [data, _tensor_tuple("index_put", indices), values], config, accumulate=accumulate)


def meshgrid(tensors: TensorsLike, indexing: str = "ij") -> Call:
    return _build("meshgrid", [_tensor_tuple("meshgrid", tensors)], indexing=indexing)


def scatter_elements(
    data: Expr,
    indices: Expr,
    updates: Expr,
    axis: int = 0,
    reduction: str = "update",
    *,
    config: BuildConfig | None = None,
) -> Call:
    return _build("scatter_elements", [data, indices, updates], config, axis=axis, reduction=reduction)


def scatter_nd(
    data: Expr,
    indices: Expr,
    updates: Expr,
    reduction: str = "update",
    *,
    config: BuildConfig | None = None,
) -> Call:
    return _build("scatter_nd", [data, indices, updates], config, reduction=reduction)


def one_hot(
    indices: Expr,
    on_value: int | float | PrimValue,
    off_value: int | float | PrimValue,
    depth: int,
    axis: int = -1,
    *,
    config: BuildConfig | None = None,
) -> Call:
    op = "one_hot"
    off_dtype = off_value.dtype if isinstance(off_value, PrimValue) else None
    on = _scalar(op, on_value, off_dtype)
    off = _scalar(op, off_value, on.dtype)
    return _build(op, [indices, on, off], config, depth=depth, axis=axis)

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import cast

from build_config import BuildConfig
from graph_ir import Expr
from index_map_analysis import check_index_map, forward_symbolic_shape, map_shape
from ir_errors import DeferredRuntimeCheck, DTypeError, SchemaError, ShapeError
from op_attrs import (
    BroadcastToAttrs,
    CollapseSumLikeAttrs,
    CollapseSumToAttrs,
    ConcatAttrs,
    ExpandDimsAttrs,
    FlattenAttrs,
    FlipAttrs,
    GatherElementsAttrs,
    GatherNDAttrs,
    IndexPutAttrs,
    IndexTensorAttrs,
    LayoutTransformAttrs,
    MeshgridAttrs,
    OneHotAttrs,
    OpAttrs,
    PermuteDimsAttrs,
    RepeatAttrs,
    ReshapeAttrs,
    ScatterElementsAttrs,
    ScatterNDAttrs,
    SplitAttrs,
    SqueezeAttrs,
    StackAttrs,
    TileAttrs,
)
from shape_algebra import (
    broadcast_shapes,
    ceil_div,
    check_broadcastable_to,
    exact_div,
    is_one,
    match_dims,
    merge_dims,
    normalize_axes,
    normalize_axis,
    shape_product,
    unify_ndim,
)
from tensor_ir import DimExpr, DType, PrimType, Relation, Shape, ShapeType, TensorType, TupleType, Type, compare


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InferResult:
    checked_type: Type
    deferred_checks: tuple[DeferredRuntimeCheck, ...] = ()


def infer(op: str, args: Sequence[Expr], attrs: OpAttrs, config: BuildConfig) -> InferResult:
    if isinstance(attrs, BroadcastToAttrs):
        return InferResult(_infer_broadcast_to(op, args))
    if isinstance(attrs, ConcatAttrs):
        return _infer_concat(op, args, attrs)
    if isinstance(attrs, ExpandDimsAttrs):
        return InferResult(_infer_expand_dims(op, args, attrs))
    if isinstance(attrs, FlattenAttrs):
        return InferResult(_infer_flatten(op, args))
    if isinstance(attrs, LayoutTransformAttrs):
        return InferResult(_infer_layout_transform(op, args, attrs))
    if isinstance(attrs, PermuteDimsAttrs):
        return InferResult(_infer_permute_dims(op, args, attrs))
    if isinstance(attrs, ReshapeAttrs):
        return InferResult(_infer_reshape(op, args))
    if isinstance(attrs, SplitAttrs):
        return InferResult(_infer_split(op, args, attrs))
    if isinstance(attrs, SqueezeAttrs):
        return InferResult(_infer_squeeze(op, args, attrs))
    if isinstance(attrs, StackAttrs):
        return _infer_stack(op, args, attrs)
    if isinstance(attrs, CollapseSumToAttrs):
        target = _shape_arg(args[1])
        return InferResult(_infer_collapse_sum(op, _tensor(args[0]), target.values, target.ndim))
    if isinstance(attrs, CollapseSumLikeAttrs):
        like = _tensor(args[1])
        return InferResult(_infer_collapse_sum(op, _tensor(args[0]), like.shape, like.ndim))
    if isinstance(attrs, RepeatAttrs):
        return InferResult(_infer_repeat(op, args, attrs))
    if isinstance(attrs, TileAttrs):
        return InferResult(_infer_tile(op, args, attrs))
    if isinstance(attrs, FlipAttrs):
        return InferResult(_infer_flip(op, args, attrs))
    if isinstance(attrs, GatherElementsAttrs):
        return _infer_gather_elements(op, args, attrs, config)
    if isinstance(attrs, GatherNDAttrs):
        return _infer_gather_nd(op, args, attrs, config)
    if isinstance(attrs, IndexTensorAttrs):
        return _infer_index_tensor(op, args, config)
    if isinstance(attrs, IndexPutAttrs):
        return _infer_index_put(op, args, attrs, config)
    if isinstance(attrs, MeshgridAttrs):
        return InferResult(_infer_meshgrid(op, args, attrs))
    if isinstance(attrs, ScatterElementsAttrs):
        return _infer_scatter_elements(op, args, attrs, config)
    if isinstance(attrs, ScatterNDAttrs):
        return _infer_scatter_nd(op, args, attrs, config)
    if isinstance(attrs, OneHotAttrs):
        return InferResult(_infer_one_hot(op, args, attrs, config))
    raise SchemaError(op, f"no inference rule for {type(attrs).__name__}")


def _tensor(arg: Expr) -> TensorType:
    return cast(TensorType, arg.checked_type)


def _tensors(arg: Expr) -> tuple[TensorType, ...]:
    return cast(tuple[TensorType, ...], cast(TupleType, arg.checked_type).fields)


def _shape_arg(arg: Expr) -> ShapeType:
    return cast(ShapeType, arg.checked_type)


def _rank_only(op: str, dtype: DType | None, ndim: int | None, reason: str) -> TensorType:
    logger.debug("%s: %s, keeping rank %s only", op, reason, ndim)
    return TensorType(dtype, None, ndim)


def _unify_dtype(op: str, types: Sequence[TensorType], what: str) -> DType | None:
    dtype: DType | None = None
    for ty in types:
        if ty.dtype is None:
            continue
        if dtype is not None and ty.dtype != dtype:
            raise DTypeError(op, f"{what} must share a dtype, got {dtype.name} and {ty.dtype.name}")
        dtype = ty.dtype
    return dtype


def _check_same_dtype(op: str, data: TensorType, other: TensorType, what: str) -> None:
    if data.dtype is not None and other.dtype is not None and data.dtype != other.dtype:
        raise DTypeError(op, f"{what} dtype {other.dtype.name} does not match data dtype {data.dtype.name}")


def _check_index_dtype(op: str, ty: TensorType, config: BuildConfig, what: str = "indices") -> None:
    if ty.dtype is not None and ty.dtype not in config.index_dtypes:
        allowed = sorted(d.name for d in config.index_dtypes)
        raise DTypeError(op, f"{what} must have one of the dtypes {allowed}, got {ty.dtype.name}")


def _index_bounds_check(op: str, where: str) -> DeferredRuntimeCheck:
    return DeferredRuntimeCheck(op, f"index values must lie within the bounds of {where}")


def _infer_broadcast_to(op: str, args: Sequence[Expr]) -> TensorType:
    x = _tensor(args[0])
    target = _shape_arg(args[1])
    if target.values is None:
        if x.ndim is not None and target.ndim is not None and x.ndim > target.ndim:
            raise ShapeError(op, f"input of rank {x.ndim} cannot broadcast to rank {target.ndim}")
        return _rank_only(op, x.dtype, target.ndim, "target shape values unknown")
    if x.shape is not None:
        check_broadcastable_to(op, x.shape, target.values, "input")
    elif x.ndim is not None and x.ndim > len(target.values):
        raise ShapeError(op, f"input of rank {x.ndim} cannot broadcast to rank {len(target.values)}")
    return TensorType(x.dtype, target.values)


def _infer_concat(op: str, args: Sequence[Expr], attrs: ConcatAttrs) -> InferResult:
    types = _tensors(args[0])
    if not types:
        raise SchemaError(op, "expects at least one tensor")
    dtype = _unify_dtype(op, types, "concat inputs")

    if attrs.axis is None:
        if any(t.shape is None for t in types):
            return InferResult(_rank_only(op, dtype, 1, "flattened input size unknown"))
        total = sum((shape_product(cast(Shape, t.shape)) for t in types), DimExpr(0))
        return InferResult(TensorType(dtype, (total,)))

    ndim = unify_ndim(op, types, "concat inputs")
    if ndim is None:
        return InferResult(TensorType(dtype))
    if ndim == 0:
        raise ShapeError(op, "cannot concatenate rank-0 tensors along an axis")
    axis = normalize_axis(op, attrs.axis, ndim)

    known = [t.shape for t in types if t.shape is not None]
    merged, unproven = merge_dims(op, known, "concat inputs", skip_axis=axis)
    if len(known) != len(types):
        return InferResult(_rank_only(op, dtype, ndim, "an input shape is unknown"))
    out = list(merged)
    out[axis] = sum((s[axis] for s in known), DimExpr(0))
    return InferResult(TensorType(dtype, tuple(out)), _dims_agree_checks(op, unproven))


def _infer_expand_dims(op: str, args: Sequence[Expr], attrs: ExpandDimsAttrs) -> TensorType:
    x = _tensor(args[0])
    if x.ndim is None:
        return TensorType(x.dtype)
    out_ndim = x.ndim + len(attrs.axis)
    inserted = set(normalize_axes(op, attrs.axis, out_ndim))
    if x.shape is None:
        return _rank_only(op, x.dtype, out_ndim, "input shape unknown")
    dims = iter(x.shape)
    return TensorType(x.dtype, tuple(DimExpr(1) if i in inserted else next(dims) for i in range(out_ndim)))


def _infer_flatten(op: str, args: Sequence[Expr]) -> TensorType:
    x = _tensor(args[0])
    if x.shape is None:
        return _rank_only(op, x.dtype, 1, "input shape unknown")
    return TensorType(x.dtype, (shape_product(x.shape),))


def _check_separators(op: str, separators: tuple[int, ...] | None, ndim: int, what: str) -> None:
    if separators is None:
        return
    previous = 0
    for sep in separators:
        if not previous < sep < ndim:
            raise ShapeError(op, f"{what} {separators} must be strictly increasing within (0, {ndim})")
        previous = sep


def _infer_layout_transform(op: str, args: Sequence[Expr], attrs: LayoutTransformAttrs) -> TensorType:
    x = _tensor(args[0])
    index_map = attrs.index_map
    check_index_map(op, index_map, x.ndim)
    pad_value = attrs.pad_value
    if pad_value is not None and x.dtype is not None and pad_value.dtype != x.dtype:
        raise DTypeError(op, f"pad_value dtype {pad_value.dtype.name} does not match input dtype {x.dtype.name}")
    _check_separators(op, attrs.axis_separators, index_map.final_ndim, "axis_separators")
    _check_separators(op, attrs.input_axis_separators, index_map.initial_ndim, "input_axis_separators")

    static = x.static_shape
    if static is not None:
        mapped = map_shape(op, index_map, static)
        if mapped is None:
            return _rank_only(op, x.dtype, index_map.final_ndim, "empty input domain")
        if mapped.padded and pad_value is None:
            raise ShapeError(
                op, f"index map does not tile shape {static} exactly and no pad_value was given for the padding"
            )
        return TensorType(x.dtype, mapped.shape)
    if x.shape is not None:
        shape = forward_symbolic_shape(index_map, x.shape)
        if shape is not None:
            return TensorType(x.dtype, shape)
    return _rank_only(op, x.dtype, index_map.final_ndim, "index map applied to a non-static shape")


def _infer_permute_dims(op: str, args: Sequence[Expr], attrs: PermuteDimsAttrs) -> TensorType:
    x = _tensor(args[0])
    if x.ndim is None and attrs.axes is None:
        return TensorType(x.dtype)
    ndim = x.ndim if x.ndim is not None else len(cast(tuple, attrs.axes))
    axes = attrs.axes if attrs.axes is not None else tuple(reversed(range(ndim)))
    if len(axes) != ndim:
        raise ShapeError(op, f"axes {axes} must have one entry per input dimension ({ndim})")
    resolved = normalize_axes(op, axes, ndim)
    if x.shape is None:
        return _rank_only(op, x.dtype, ndim, "input shape unknown")
    return TensorType(x.dtype, tuple(x.shape[a] for a in resolved))


def _infer_reshape(op: str, args: Sequence[Expr]) -> TensorType:
    x = _tensor(args[0])
    target = _shape_arg(args[1])
    if target.values is None:
        return _rank_only(op, x.dtype, target.ndim, "target shape values unknown")
    values = target.values
    wildcards = [i for i, d in enumerate(values) if d == DimExpr(-1)]
    if len(wildcards) > 1:
        raise SchemaError(op, f"at most one -1 entry is allowed in the target shape, got {len(wildcards)}")
    for d in values:
        if d.is_static and d.value < -1:
            raise ShapeError(op, f"target dimensions must be non-negative, got {d}")

    if x.shape is None:
        if wildcards:
            return _rank_only(op, x.dtype, len(values), "cannot resolve -1 without the input shape")
        return TensorType(x.dtype, values)

    total = shape_product(x.shape)
    if not wildcards:
        if compare(total, shape_product(values)) == Relation.NOT_EQUAL:
            raise ShapeError(op, f"cannot reshape {x.shape} ({total} elements) into {values}")
        return TensorType(x.dtype, values)

    i = wildcards[0]
    known = shape_product(d for j, d in enumerate(values) if j != i)
    if known == DimExpr(0):
        raise ShapeError(op, f"cannot infer -1 in {values}: the other dimensions hold zero elements")
    inferred = exact_div(total, known)
    if inferred is None:
        if total.is_static and known.is_static:
            raise ShapeError(op, f"cannot reshape {x.shape} ({total} elements) into {values}")
        return _rank_only(op, x.dtype, len(values), "-1 is not an exact quotient")
    return TensorType(x.dtype, values[:i] + (inferred,) + values[i + 1 :])


def _section_sizes(extent: DimExpr | None, sections: int) -> list[DimExpr | None]:
    if extent is None:
        return [None] * sections
    if extent.is_static:
        size = cast(DimExpr, ceil_div(extent, sections)).value
        return [DimExpr(max(0, min(size, extent.value - i * size))) for i in range(sections)]
    size_expr = exact_div(extent, DimExpr(sections))
    return [size_expr] * sections


def _index_sizes(op: str, extent: DimExpr | None, indices: tuple[int, ...]) -> list[DimExpr | None]:
    previous = 0
    for index in indices:
        if index < previous:
            raise ShapeError(op, f"split indices {indices} must be non-negative and non-decreasing")
        previous = index
    if extent is not None and extent.is_static and indices and indices[-1] > extent.value:
        raise ShapeError(op, f"split index {indices[-1]} exceeds axis extent {extent}")
    bounds = (0, *indices)
    sizes: list[DimExpr | None] = [DimExpr(hi - lo) for lo, hi in zip(bounds, bounds[1:])]
    sizes.append(None if extent is None else extent - bounds[-1])
    return sizes


def _infer_split(op: str, args: Sequence[Expr], attrs: SplitAttrs) -> TupleType:
    x = _tensor(args[0])
    sections = attrs.indices_or_sections
    if isinstance(sections, int) and sections <= 0:
        raise SchemaError(op, f"number of sections must be positive, got {sections}")
    count = sections if isinstance(sections, int) else len(sections) + 1
    if x.ndim is None:
        return TupleType(tuple(TensorType(x.dtype) for _ in range(count)))

    axis = normalize_axis(op, attrs.axis, x.ndim)
    extent = x.shape[axis] if x.shape is not None else None
    sizes = _section_sizes(extent, sections) if isinstance(sections, int) else _index_sizes(op, extent, sections)

    outputs: list[TensorType] = []
    for size in sizes:
        if x.shape is None or size is None:
            outputs.append(_rank_only(op, x.dtype, x.ndim, "section extent unknown"))
            continue
        outputs.append(TensorType(x.dtype, x.shape[:axis] + (size,) + x.shape[axis + 1 :]))
    return TupleType(tuple(outputs))


def _infer_squeeze(op: str, args: Sequence[Expr], attrs: SqueezeAttrs) -> TensorType:
    x = _tensor(args[0])
    if attrs.axis is None:
        if x.shape is None:
            return TensorType(x.dtype)
        if any(is_one(d) == Relation.UNKNOWN for d in x.shape):
            logger.debug("%s: unit axes of %s not decidable, rank unknown", op, x.shape)
            return TensorType(x.dtype)
        return TensorType(x.dtype, tuple(d for d in x.shape if is_one(d) != Relation.EQUAL))

    if x.ndim is None:
        return TensorType(x.dtype)
    axes = normalize_axes(op, attrs.axis, x.ndim)
    if x.shape is None:
        return _rank_only(op, x.dtype, x.ndim - len(axes), "input shape unknown")
    for a in axes:
        if is_one(x.shape[a]) == Relation.NOT_EQUAL:
            raise ShapeError(op, f"cannot squeeze axis {a} of size {x.shape[a]}")
    return TensorType(x.dtype, tuple(d for i, d in enumerate(x.shape) if i not in axes))


def _infer_stack(op: str, args: Sequence[Expr], attrs: StackAttrs) -> InferResult:
    types = _tensors(args[0])
    if not types:
        raise SchemaError(op, "expects at least one tensor")
    dtype = _unify_dtype(op, types, "stack inputs")
    ndim = unify_ndim(op, types, "stack inputs")
    if ndim is None:
        return InferResult(TensorType(dtype))
    axis = normalize_axis(op, attrs.axis, ndim + 1)

    known = [t.shape for t in types if t.shape is not None]
    merged, unproven = merge_dims(op, known, "stack inputs")
    if len(known) != len(types):
        return InferResult(_rank_only(op, dtype, ndim + 1, "an input shape is unknown"))
    out = merged[:axis] + (DimExpr(len(types)),) + merged[axis:]
    return InferResult(TensorType(dtype, out), _dims_agree_checks(op, unproven))


def _dims_agree_checks(op: str, axes: Sequence[int]) -> tuple[DeferredRuntimeCheck, ...]:
    if axes:
        logger.debug("%s: input dimensions %s not provably equal", op, list(axes))
    return tuple(DeferredRuntimeCheck(op, f"inputs agree on dimension {i}") for i in axes)


def _infer_collapse_sum(op: str, data: TensorType, target: Shape | None, target_ndim: int | None) -> TensorType:
    if target is None:
        if data.ndim is not None and target_ndim is not None and target_ndim > data.ndim:
            raise ShapeError(op, f"target of rank {target_ndim} cannot be collapsed from rank {data.ndim}")
        return _rank_only(op, data.dtype, target_ndim, "target shape unknown")
    if data.shape is not None:
        check_broadcastable_to(op, target, data.shape, "collapse target")
    elif data.ndim is not None and len(target) > data.ndim:
        raise ShapeError(op, f"target of rank {len(target)} cannot be collapsed from rank {data.ndim}")
    return TensorType(data.dtype, target)


def _infer_repeat(op: str, args: Sequence[Expr], attrs: RepeatAttrs) -> TensorType:
    x = _tensor(args[0])
    if attrs.axis is None:
        if x.shape is None:
            return _rank_only(op, x.dtype, 1, "input shape unknown")
        return TensorType(x.dtype, (shape_product(x.shape) * attrs.repeats,))
    if x.ndim is None:
        return TensorType(x.dtype)
    axis = normalize_axis(op, attrs.axis, x.ndim)
    if x.shape is None:
        return _rank_only(op, x.dtype, x.ndim, "input shape unknown")
    out = list(x.shape)
    out[axis] = out[axis] * attrs.repeats
    return TensorType(x.dtype, tuple(out))


def _infer_tile(op: str, args: Sequence[Expr], attrs: TileAttrs) -> TensorType:
    x = _tensor(args[0])
    if x.ndim is None:
        return TensorType(x.dtype)
    ndim = max(x.ndim, len(attrs.repeats))
    if x.shape is None:
        return _rank_only(op, x.dtype, ndim, "input shape unknown")
    shape = (DimExpr(1),) * (ndim - x.ndim) + x.shape
    repeats = (1,) * (ndim - len(attrs.repeats)) + attrs.repeats
    return TensorType(x.dtype, tuple(d * r for d, r in zip(shape, repeats)))


def _infer_flip(op: str, args: Sequence[Expr], attrs: FlipAttrs) -> TensorType:
    x = _tensor(args[0])
    if x.ndim is not None:
        normalize_axis(op, attrs.axis, x.ndim)
    return TensorType(x.dtype, x.shape, x.ndim)


def _infer_gather_elements(
    op: str, args: Sequence[Expr], attrs: GatherElementsAttrs, config: BuildConfig
) -> InferResult:
    data, indices = _tensor(args[0]), _tensor(args[1])
    _check_index_dtype(op, indices, config)
    ndim = unify_ndim(op, (data, indices), "data and indices")
    axis = normalize_axis(op, attrs.axis, ndim) if ndim is not None else None
    if data.shape is not None and indices.shape is not None:
        match_dims(op, indices.shape, data.shape, "indices vs data", skip_axis=axis)
    checks = (_index_bounds_check(op, f"data axis {attrs.axis}"),)
    if indices.shape is None:
        return InferResult(_rank_only(op, data.dtype, ndim, "indices shape unknown"), checks)
    return InferResult(TensorType(data.dtype, indices.shape), checks)


def _infer_gather_nd(op: str, args: Sequence[Expr], attrs: GatherNDAttrs, config: BuildConfig) -> InferResult:
    data, indices = _tensor(args[0]), _tensor(args[1])
    _check_index_dtype(op, indices, config)
    batch_dims = attrs.batch_dims
    checks = (_index_bounds_check(op, "the indexed data dimensions"),)
    if indices.ndim is not None:
        if indices.ndim < 1:
            raise ShapeError(op, "indices must have rank >= 1")
        if batch_dims >= indices.ndim:
            raise ShapeError(op, f"batch_dims {batch_dims} must be less than the indices rank {indices.ndim}")
    if data.ndim is not None and batch_dims > data.ndim:
        raise ShapeError(op, f"batch_dims {batch_dims} exceeds the data rank {data.ndim}")
    if indices.shape is None or not indices.shape[-1].is_static:
        logger.debug("%s: index depth unknown, rank unknown", op)
        return InferResult(TensorType(data.dtype), checks)

    depth = indices.shape[-1].value
    if data.ndim is None:
        return InferResult(TensorType(data.dtype), checks)
    if batch_dims + depth > data.ndim:
        raise ShapeError(
            op, f"index depth {depth} exceeds the {data.ndim - batch_dims} data dims remaining after batch_dims"
        )
    out_ndim = indices.ndim - 1 + data.ndim - depth
    if data.shape is None:
        return InferResult(_rank_only(op, data.dtype, out_ndim, "data shape unknown"), checks)
    match_dims(op, data.shape[:batch_dims], indices.shape[:batch_dims], "batch dimensions of data vs indices")
    out = indices.shape[:batch_dims] + indices.shape[batch_dims:-1] + data.shape[batch_dims + depth :]
    return InferResult(TensorType(data.dtype, out), checks)


def _index_broadcast(op: str, index_types: Sequence[TensorType]) -> Shape | None:
    known = [t.shape for t in index_types if t.shape is not None]
    shape = broadcast_shapes(op, known)
    return shape if len(known) == len(index_types) else None


def _infer_index_tensor(op: str, args: Sequence[Expr], config: BuildConfig) -> InferResult:
    data = _tensor(args[0])
    index_types = _tensors(args[1])
    if not index_types:
        raise SchemaError(op, "expects at least one index tensor")
    for k, ty in enumerate(index_types):
        _check_index_dtype(op, ty, config, f"index tensor {k}")
    count = len(index_types)
    if data.ndim is not None and count > data.ndim:
        raise ShapeError(op, f"{count} index tensors given for data of rank {data.ndim}")
    checks = (_index_bounds_check(op, "each indexed data dimension"),)
    broadcast = _index_broadcast(op, index_types)
    if data.ndim is None:
        return InferResult(TensorType(data.dtype), checks)
    if broadcast is None:
        ndims = [t.ndim for t in index_types]
        if any(n is None for n in ndims):
            return InferResult(TensorType(data.dtype), checks)
        out_ndim = max(cast(list[int], ndims)) + data.ndim - count
        return InferResult(_rank_only(op, data.dtype, out_ndim, "index broadcast shape unknown"), checks)
    if data.shape is None:
        return InferResult(_rank_only(op, data.dtype, len(broadcast) + data.ndim - count, "data shape unknown"), checks)
    return InferResult(TensorType(data.dtype, broadcast + data.shape[count:]), checks)


def _infer_index_put(op: str, args: Sequence[Expr], attrs: IndexPutAttrs, config: BuildConfig) -> InferResult:
    data, values = _tensor(args[0]), _tensor(args[2])
    index_types = _tensors(args[1])
    if not index_types:
        raise SchemaError(op, "expects at least one index tensor")
    for k, ty in enumerate(index_types):
        _check_index_dtype(op, ty, config, f"index tensor {k}")
    _check_same_dtype(op, data, values, "values")
    count = len(index_types)
    if data.ndim is not None and count > data.ndim:
        raise ShapeError(op, f"{count} index tensors given for data of rank {data.ndim}")
    broadcast = _index_broadcast(op, index_types)
    if broadcast is not None and data.shape is not None and values.shape is not None:
        check_broadcastable_to(op, values.shape, broadcast + data.shape[count:], "values")
    checks = [_index_bounds_check(op, "each indexed data dimension")]
    if not attrs.accumulate:
        checks.append(DeferredRuntimeCheck(op, "duplicate indices leave the written value unspecified"))
    return InferResult(TensorType(data.dtype, data.shape, data.ndim), tuple(checks))


def _infer_meshgrid(op: str, args: Sequence[Expr], attrs: MeshgridAttrs) -> TupleType:
    types = _tensors(args[0])
    if not types:
        raise SchemaError(op, "expects at least one tensor")
    dtype = _unify_dtype(op, types, "meshgrid inputs")
    for k, ty in enumerate(types):
        if ty.ndim is not None and ty.ndim != 1:
            raise ShapeError(op, f"input {k} must be 1-D, got rank {ty.ndim}")
    count = len(types)
    lengths = [ty.shape[0] if ty.shape is not None else None for ty in types]
    if attrs.indexing == "xy" and count >= 2:
        lengths[0], lengths[1] = lengths[1], lengths[0]
    if any(n is None for n in lengths):
        return TupleType(tuple(_rank_only(op, dtype, count, "input length unknown") for _ in range(count)))
    shape = tuple(cast(list[DimExpr], lengths))
    return TupleType(tuple(TensorType(dtype, shape) for _ in range(count)))


def _infer_scatter_elements(
    op: str, args: Sequence[Expr], attrs: ScatterElementsAttrs, config: BuildConfig
) -> InferResult:
    data, indices, updates = _tensor(args[0]), _tensor(args[1]), _tensor(args[2])
    _check_index_dtype(op, indices, config)
    _check_same_dtype(op, data, updates, "updates")
    ndim = unify_ndim(op, (data, indices, updates), "data, indices and updates")
    if ndim is not None:
        normalize_axis(op, attrs.axis, ndim)
    if indices.shape is not None and updates.shape is not None:
        match_dims(op, indices.shape, updates.shape, "indices vs updates")
    checks = [_index_bounds_check(op, f"data axis {attrs.axis}")]
    if attrs.reduction == "mean":
        checks.append(
            DeferredRuntimeCheck(op, "mean reduction accumulates duplicates commutatively, then divides by their count")
        )
    return InferResult(TensorType(data.dtype, data.shape, data.ndim), tuple(checks))


def _infer_scatter_nd(op: str, args: Sequence[Expr], attrs: ScatterNDAttrs, config: BuildConfig) -> InferResult:
    data, indices, updates = _tensor(args[0]), _tensor(args[1]), _tensor(args[2])
    _check_index_dtype(op, indices, config)
    _check_same_dtype(op, data, updates, "updates")
    if indices.ndim is not None and indices.ndim < 1:
        raise ShapeError(op, "indices must have rank >= 1")
    if indices.shape is not None and indices.shape[-1].is_static:
        depth = indices.shape[-1].value
        if data.ndim is not None and depth > data.ndim:
            raise ShapeError(op, f"index depth {depth} exceeds the data rank {data.ndim}")
        if data.shape is not None and updates.shape is not None:
            expected = indices.shape[:-1] + data.shape[depth:]
            match_dims(op, updates.shape, expected, "updates vs indices.shape[:-1] + data.shape[depth:]")
        elif data.ndim is not None and updates.ndim is not None:
            expected_ndim = indices.ndim - 1 + data.ndim - depth
            if updates.ndim != expected_ndim:
                raise ShapeError(op, f"updates must have rank {expected_ndim}, got {updates.ndim}")
    checks = (_index_bounds_check(op, "the indexed data dimensions"),)
    return InferResult(TensorType(data.dtype, data.shape, data.ndim), checks)


def _infer_one_hot(op: str, args: Sequence[Expr], attrs: OneHotAttrs, config: BuildConfig) -> TensorType:
    indices = _tensor(args[0])
    on_type = cast(PrimType, args[1].checked_type)
    off_type = cast(PrimType, args[2].checked_type)
    _check_index_dtype(op, indices, config)
    if on_type.dtype != off_type.dtype:
        raise DTypeError(
            op, f"on_value dtype {on_type.dtype.name} does not match off_value dtype {off_type.dtype.name}"
        )
    if indices.ndim is None:
        return TensorType(on_type.dtype)
    axis = normalize_axis(op, attrs.axis, indices.ndim + 1)
    if indices.shape is None:
        return _rank_only(op, on_type.dtype, indices.ndim + 1, "indices shape unknown")
    return TensorType(on_type.dtype, indices.shape[:axis] + (DimExpr(attrs.depth),) + indices.shape[axis:])

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, fields
from enum import Enum, auto
from types import MappingProxyType
from typing import Any

import numpy as np

from graph_ir import Expr, prim_value
from ir_errors import SchemaError
from op_attrs import (
    AttrKind,
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
from tensor_ir import IndexMap, PrimType, ShapeType, TensorType, TupleType, Type


class ArgRole(Enum):
    TENSOR = auto()
    TENSOR_TUPLE = auto()
    SHAPE = auto()
    PRIM_VALUE = auto()


@dataclass(frozen=True)
class ArgSpec:
    name: str
    role: ArgRole


@dataclass(frozen=True)
class OpDef:
    name: str
    args: tuple[ArgSpec, ...]
    attrs_type: type

    def make_attrs(self, **values: Any) -> OpAttrs:
        schema = {f.name: f for f in fields(self.attrs_type)}
        unknown = sorted(set(values) - set(schema))
        if unknown:
            raise SchemaError(self.name, f"unknown attribute(s) {unknown}")
        checked: dict[str, Any] = {}
        for name, spec in schema.items():
            if name in values:
                checked[name] = _check_attr(self.name, name, spec.metadata, values[name])
            elif spec.default is MISSING:
                raise SchemaError(self.name, f"missing required attribute '{name}'")
        return self.attrs_type(**checked)

    def check_args(self, args: Sequence[Expr]) -> None:
        if len(args) != len(self.args):
            expected = ", ".join(spec.name for spec in self.args)
            raise SchemaError(self.name, f"expects {len(self.args)} argument(s) ({expected}), got {len(args)}")
        for spec, arg in zip(self.args, args):
            if not isinstance(arg, Expr):
                raise SchemaError(self.name, f"argument '{spec.name}' must be an Expr, got {type(arg).__name__}")
            if not _role_accepts(spec.role, arg.checked_type):
                raise SchemaError(
                    self.name,
                    f"argument '{spec.name}' expects {spec.role.name.lower()}, got {arg.checked_type}",
                )


def _role_accepts(role: ArgRole, ty: Type) -> bool:
    if role == ArgRole.TENSOR:
        return isinstance(ty, TensorType)
    if role == ArgRole.TENSOR_TUPLE:
        return isinstance(ty, TupleType) and all(isinstance(f, TensorType) for f in ty.fields)
    if role == ArgRole.SHAPE:
        return isinstance(ty, ShapeType)
    return isinstance(ty, PrimType)


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def _as_int(op: str, name: str, value: Any) -> int:
    if not _is_int(value):
        raise SchemaError(op, f"attribute '{name}' expects an int, got {value!r}")
    return int(value)


def _as_int_tuple(op: str, name: str, value: Any) -> tuple[int, ...]:
    if _is_int(value) or isinstance(value, (str, bytes)) or not isinstance(value, (Sequence, np.ndarray)):
        raise SchemaError(op, f"attribute '{name}' expects a sequence of ints, got {value!r}")
    return tuple(_as_int(op, name, v) for v in value)


def _check_attr(op: str, name: str, metadata: Mapping[str, Any], value: Any) -> Any:
    kind = metadata["kind"]
    if value is None and kind in (AttrKind.OPTIONAL_INT, AttrKind.OPTIONAL_INT_ARRAY, AttrKind.OPTIONAL_PRIM_VALUE):
        return None

    if kind in (AttrKind.INT, AttrKind.OPTIONAL_INT):
        result = _as_int(op, name, value)
    elif kind in (AttrKind.INT_ARRAY, AttrKind.OPTIONAL_INT_ARRAY):
        result = _as_int_tuple(op, name, value)
    elif kind == AttrKind.INT_OR_INT_ARRAY:
        result = _as_int(op, name, value) if _is_int(value) else _as_int_tuple(op, name, value)
    elif kind == AttrKind.BOOL:
        if not isinstance(value, (bool, np.bool_)):
            raise SchemaError(op, f"attribute '{name}' expects a bool, got {value!r}")
        result = bool(value)
    elif kind == AttrKind.STRING:
        if not isinstance(value, str):
            raise SchemaError(op, f"attribute '{name}' expects a string, got {value!r}")
        result = value
    elif kind == AttrKind.INDEX_MAP:
        if not isinstance(value, IndexMap):
            raise SchemaError(op, f"attribute '{name}' expects an IndexMap, got {value!r}")
        result = value
    else:
        try:
            result = prim_value(value)
        except TypeError as e:
            raise SchemaError(op, f"attribute '{name}' expects a PrimValue, got {value!r}") from e

    choices = metadata["choices"]
    if choices and result not in choices:
        raise SchemaError(op, f"attribute '{name}' must be one of {list(choices)}, got {result!r}")

    minimum = metadata["minimum"]
    if minimum is not None:
        for v in result if isinstance(result, tuple) else (result,):
            if v < minimum:
                raise SchemaError(op, f"attribute '{name}' must be >= {minimum}, got {v}")
    return result


def _op(name: str, attrs_type: type, *args: tuple[str, ArgRole]) -> OpDef:
    return OpDef(name=name, args=tuple(ArgSpec(n, role) for n, role in args), attrs_type=attrs_type)


_T = ArgRole.TENSOR
_TT = ArgRole.TENSOR_TUPLE
_S = ArgRole.SHAPE
_P = ArgRole.PRIM_VALUE

_OPS = (
    _op("broadcast_to", BroadcastToAttrs, ("x", _T), ("shape", _S)),
    _op("concat", ConcatAttrs, ("tensors", _TT)),
    _op("expand_dims", ExpandDimsAttrs, ("x", _T)),
    _op("flatten", FlattenAttrs, ("x", _T)),
    _op("layout_transform", LayoutTransformAttrs, ("x", _T)),
    _op("permute_dims", PermuteDimsAttrs, ("x", _T)),
    _op("reshape", ReshapeAttrs, ("x", _T), ("shape", _S)),
    _op("split", SplitAttrs, ("x", _T)),
    _op("squeeze", SqueezeAttrs, ("x", _T)),
    _op("stack", StackAttrs, ("tensors", _TT)),
    _op("collapse_sum_to", CollapseSumToAttrs, ("data", _T), ("shape", _S)),
    _op("collapse_sum_like", CollapseSumLikeAttrs, ("data", _T), ("collapse_target", _T)),
    _op("repeat", RepeatAttrs, ("data", _T)),
    _op("tile", TileAttrs, ("data", _T)),
    _op("flip", FlipAttrs, ("data", _T)),
    _op("gather_elements", GatherElementsAttrs, ("data", _T), ("indices", _T)),
    _op("gather_nd", GatherNDAttrs, ("data", _T), ("indices", _T)),
    _op("index_tensor", IndexTensorAttrs, ("data", _T), ("indices", _TT)),
    _op("index_put", IndexPutAttrs, ("data", _T), ("indices", _TT), ("values", _T)),
    _op("meshgrid", MeshgridAttrs, ("tensors", _TT)),
    _op("scatter_elements", ScatterElementsAttrs, ("data", _T), ("indices", _T), ("updates", _T)),
    _op("scatter_nd", ScatterNDAttrs, ("data", _T), ("indices", _T), ("updates", _T)),
    _op("one_hot", OneHotAttrs, ("indices", _T), ("on_value", _P), ("off_value", _P)),
)

_REGISTRY: Mapping[str, OpDef] = MappingProxyType({op.name: op for op in _OPS})


def get_op(name: str) -> OpDef:
    op = _REGISTRY.get(name)
    if op is None:
        raise SchemaError(name, "unknown operator")
    return op


def list_ops() -> tuple[str, ...]:
    return tuple(_REGISTRY)

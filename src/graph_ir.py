from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from ir_errors import DeferredRuntimeCheck, SchemaError
from tensor_ir import DimExpr, DType, PrimType, Shape, ShapeType, TensorType, TupleType, Type, as_shape

if TYPE_CHECKING:
    from op_attrs import OpAttrs
    from op_registry import OpDef


class Expr:
    checked_type: Type


@dataclass(frozen=True)
class Var(Expr):
    name: str
    checked_type: Type


@dataclass(frozen=True, eq=False)
class Constant(Expr):
    data: np.ndarray
    checked_type: TensorType = field(init=False)

    def __post_init__(self) -> None:
        data = np.array(self.data, copy=True)
        data.setflags(write=False)
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "checked_type", TensorType(DType.from_numpy(data.dtype), data.shape))


@dataclass(frozen=True)
class PrimValue(Expr):
    value: int | float | bool | DimExpr
    dtype: DType
    checked_type: PrimType = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "checked_type", PrimType(self.dtype))


def prim_value(value: int | float | bool | PrimValue) -> PrimValue:
    if isinstance(value, PrimValue):
        return value
    if isinstance(value, bool):
        return PrimValue(value, DType.BOOL)
    if isinstance(value, (int, np.integer)):
        return PrimValue(int(value), DType.INT64)
    if isinstance(value, (float, np.floating)):
        return PrimValue(float(value), DType.FLOAT32)
    raise TypeError(f"Cannot wrap {value!r} as a PrimValue.")


@dataclass(frozen=True)
class ShapeExpr(Expr):
    values: Shape
    checked_type: ShapeType = field(init=False)

    def __post_init__(self) -> None:
        values = as_shape(self.values)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "checked_type", ShapeType(values))


@dataclass(frozen=True)
class Tuple(Expr):
    fields: tuple[Expr, ...]
    checked_type: TupleType = field(init=False)

    def __post_init__(self) -> None:
        fields = tuple(self.fields)
        object.__setattr__(self, "fields", fields)
        object.__setattr__(self, "checked_type", TupleType(tuple(f.checked_type for f in fields)))


@dataclass(frozen=True)
class TupleGetItem(Expr):
    tuple_value: Expr
    index: int
    checked_type: Type = field(init=False)

    def __post_init__(self) -> None:
        tuple_type = self.tuple_value.checked_type
        if not isinstance(tuple_type, TupleType):
            raise SchemaError("tuple_get_item", f"expects a tuple-typed value, got {tuple_type}")
        count = len(tuple_type.fields)
        if not -count <= self.index < count:
            raise SchemaError("tuple_get_item", f"index {self.index} out of range for {count} fields")
        object.__setattr__(self, "checked_type", tuple_type.fields[self.index])


@dataclass(frozen=True)
class Call(Expr):
    op: OpDef
    args: tuple[Expr, ...]
    attrs: OpAttrs
    checked_type: Type
    deferred_checks: tuple[DeferredRuntimeCheck, ...] = ()

    def __getitem__(self, index: int) -> TupleGetItem:
        return TupleGetItem(self, index)

    def outputs(self) -> tuple[Expr, ...]:
        if not isinstance(self.checked_type, TupleType):
            return (self,)
        return tuple(TupleGetItem(self, i) for i in range(len(self.checked_type.fields)))


def tensor_var(name: str, shape: Sequence | None, dtype: DType | None = DType.FLOAT32, ndim: int | None = None) -> Var:
    return Var(name, TensorType(dtype, None if shape is None else as_shape(shape), ndim))

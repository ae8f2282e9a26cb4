from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, auto

import numpy as np


_SYMBOL_NAME = re.compile(r"^[a-zA-Z_]\w*$")


@dataclass(frozen=True, order=True)
class Symbol:
    name: str

    def __post_init__(self) -> None:
        if not _SYMBOL_NAME.match(self.name):
            raise ValueError(f"Invalid symbol name {self.name!r}.")


Monomial = tuple[Symbol, ...]


@dataclass(frozen=True)
class DimExpr:
    # canonical terms, so dataclass equality is polynomial equality
    base: int = 0
    terms: tuple[tuple[Monomial, int], ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.base, bool) or not isinstance(self.base, (int, np.integer)):
            raise TypeError(f"Dimension base must be an int, got {self.base!r}.")
        object.__setattr__(self, "base", int(self.base))
        object.__setattr__(self, "terms", _canonical_terms(self.terms))

    @property
    def is_static(self) -> bool:
        return not self.terms

    @property
    def value(self) -> int:
        if self.terms:
            raise ValueError(f"Dimension {self} is symbolic.")
        return self.base

    @property
    def symbols(self) -> frozenset[Symbol]:
        return frozenset(sym for mono, _ in self.terms for sym in mono)

    def __add__(self, other: DimLike) -> DimExpr:
        if isinstance(other, _QuasiAffine):
            return NotImplemented
        rhs = as_dim(other)
        return DimExpr(self.base + rhs.base, self.terms + rhs.terms)

    def __radd__(self, other: DimLike) -> DimExpr:
        return as_dim(other) + self

    def __neg__(self) -> DimExpr:
        return DimExpr(-self.base, tuple((mono, -coeff) for mono, coeff in self.terms))

    def __sub__(self, other: DimLike) -> DimExpr:
        if isinstance(other, _QuasiAffine):
            return NotImplemented
        return self + -as_dim(other)

    def __rsub__(self, other: DimLike) -> DimExpr:
        return as_dim(other) - self

    def __mul__(self, other: DimLike) -> DimExpr:
        if isinstance(other, _QuasiAffine):
            return NotImplemented
        rhs = as_dim(other)
        terms: list[tuple[Monomial, int]] = []
        for mono, coeff in self.terms:
            terms.append((mono, coeff * rhs.base))
            for rhs_mono, rhs_coeff in rhs.terms:
                terms.append((tuple(sorted(mono + rhs_mono)), coeff * rhs_coeff))
        for rhs_mono, rhs_coeff in rhs.terms:
            terms.append((rhs_mono, self.base * rhs_coeff))
        return DimExpr(self.base * rhs.base, tuple(terms))

    def __rmul__(self, other: DimLike) -> DimExpr:
        return as_dim(other) * self

    def __floordiv__(self, divisor: int) -> IndexExpr:
        if self.is_static:
            return DimExpr(self.base // _positive_divisor(divisor))
        return FloorDiv(self, divisor)

    def __mod__(self, divisor: int) -> IndexExpr:
        if self.is_static:
            return DimExpr(self.base % _positive_divisor(divisor))
        return FloorMod(self, divisor)

    def __str__(self) -> str:
        parts = []
        for mono, coeff in self.terms:
            names = "*".join(sym.name for sym in mono)
            parts.append(names if coeff == 1 else f"{coeff}*{names}")
        if self.base or not parts:
            parts.append(str(self.base))
        return " + ".join(parts).replace("+ -", "- ")


def _canonical_terms(terms: Mapping | Iterable) -> tuple[tuple[Monomial, int], ...]:
    items = terms.items() if isinstance(terms, Mapping) else terms
    merged: dict[Monomial, int] = {}
    for key, coeff in items:
        mono = (key,) if isinstance(key, Symbol) else tuple(sorted(key))
        if not mono:
            raise ValueError("Empty monomial; use the base for constants.")
        merged[mono] = merged.get(mono, 0) + int(coeff)
    return tuple(sorted(
        ((mono, coeff) for mono, coeff in merged.items() if coeff != 0),
        key=lambda item: (len(item[0]), item[0]),
    ))


def dim(base: int = 0, **coeffs: int) -> DimExpr:
    return DimExpr(base, {Symbol(name): coeff for name, coeff in coeffs.items()})


DimLike = DimExpr | int | np.integer | str | Symbol


def as_dim(value: DimLike) -> DimExpr:
    if isinstance(value, DimExpr):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Unsupported dimension value {value!r}.")
    if isinstance(value, (int, np.integer)):
        return DimExpr(int(value))
    if isinstance(value, str):
        return DimExpr(0, {Symbol(value): 1})
    if isinstance(value, Symbol):
        return DimExpr(0, {value: 1})
    raise TypeError(f"Unsupported dimension value {value!r} ({type(value).__name__}).")


Shape = tuple[DimExpr, ...]


def as_shape(values: Iterable[DimLike]) -> Shape:
    return tuple(as_dim(v) for v in values)


class Relation(Enum):
    EQUAL = auto()
    NOT_EQUAL = auto()
    UNKNOWN = auto()


def compare(lhs: DimLike, rhs: DimLike) -> Relation:
    diff = as_dim(lhs) - as_dim(rhs)
    if not diff.is_static:
        return Relation.UNKNOWN
    return Relation.EQUAL if diff.base == 0 else Relation.NOT_EQUAL


class DType(Enum):
    FLOAT16 = auto()
    BFLOAT16 = auto()
    FLOAT32 = auto()
    FLOAT64 = auto()
    INT8 = auto()
    INT16 = auto()
    INT32 = auto()
    INT64 = auto()
    UINT8 = auto()
    UINT32 = auto()
    UINT64 = auto()
    BOOL = auto()

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_DTYPES

    @property
    def is_float(self) -> bool:
        return self in (DType.FLOAT16, DType.BFLOAT16, DType.FLOAT32, DType.FLOAT64)

    def to_numpy(self) -> np.dtype:
        np_dtype = _TO_NUMPY.get(self)
        if np_dtype is None:
            raise TypeError(f"{self} has no numpy equivalent.")
        return np.dtype(np_dtype)

    @staticmethod
    def from_numpy(dtype: np.dtype | type | str) -> DType:
        np_dtype = np.dtype(dtype)
        for candidate, np_type in _TO_NUMPY.items():
            if np.dtype(np_type) == np_dtype:
                return candidate
        raise TypeError(f"Unsupported numpy dtype {np_dtype}.")


_INTEGER_DTYPES = frozenset(
    {DType.INT8, DType.INT16, DType.INT32, DType.INT64, DType.UINT8, DType.UINT32, DType.UINT64}
)

_TO_NUMPY = {
    DType.FLOAT16: np.float16,
    DType.FLOAT32: np.float32,
    DType.FLOAT64: np.float64,
    DType.INT8: np.int8,
    DType.INT16: np.int16,
    DType.INT32: np.int32,
    DType.INT64: np.int64,
    DType.UINT8: np.uint8,
    DType.UINT32: np.uint32,
    DType.UINT64: np.uint64,
    DType.BOOL: np.bool_,
}


def _positive_divisor(divisor: int) -> int:
    if isinstance(divisor, bool) or not isinstance(divisor, (int, np.integer)) or divisor <= 0:
        raise ValueError(f"Index map divisor must be a positive int, got {divisor!r}.")
    return int(divisor)


class _QuasiAffine:
    def __add__(self, other: IndexExpr | int) -> IndexExpr:
        if not _is_index_operand(other):
            return NotImplemented
        lhs, rhs = _as_index_sum(self), _as_index_sum(other)
        return _index_sum(lhs.affine + rhs.affine, lhs.terms + rhs.terms)

    __radd__ = __add__

    def __neg__(self) -> IndexExpr:
        return self * -1

    def __sub__(self, other: IndexExpr | int) -> IndexExpr:
        if not _is_index_operand(other):
            return NotImplemented
        return self + -other

    def __rsub__(self, other: IndexExpr | int) -> IndexExpr:
        if not _is_index_operand(other):
            return NotImplemented
        return -self + other

    def __mul__(self, other: IndexExpr | int) -> IndexExpr:
        if not _is_index_operand(other):
            return NotImplemented
        if isinstance(other, DimExpr) and other.is_static:
            factor = other.base
        elif isinstance(other, (int, np.integer)):
            factor = int(other)
        else:
            raise ValueError(f"Index expression {self} * ({other}) is not quasi-affine.")
        lhs = _as_index_sum(self)
        return _index_sum(lhs.affine * factor, tuple((atom, coeff * factor) for atom, coeff in lhs.terms))

    __rmul__ = __mul__

    def __floordiv__(self, divisor: int) -> IndexExpr:
        return FloorDiv(self, divisor)

    def __mod__(self, divisor: int) -> IndexExpr:
        return FloorMod(self, divisor)


@dataclass(frozen=True)
class FloorDiv(_QuasiAffine):
    lhs: IndexExpr
    divisor: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "divisor", _positive_divisor(self.divisor))

    def __str__(self) -> str:
        return f"floor(({self.lhs}) / {self.divisor})"


@dataclass(frozen=True)
class FloorMod(_QuasiAffine):
    lhs: IndexExpr
    divisor: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "divisor", _positive_divisor(self.divisor))

    def __str__(self) -> str:
        return f"(({self.lhs}) mod {self.divisor})"


# affine part plus integer multiples of floor terms
@dataclass(frozen=True)
class IndexSum(_QuasiAffine):
    affine: DimExpr
    terms: tuple[tuple[FloorDiv | FloorMod, int], ...]

    def __post_init__(self) -> None:
        merged: dict[FloorDiv | FloorMod, int] = {}
        for atom, coeff in self.terms:
            merged[atom] = merged.get(atom, 0) + int(coeff)
        object.__setattr__(self, "affine", as_dim(self.affine))
        object.__setattr__(self, "terms", tuple(sorted(
            ((atom, coeff) for atom, coeff in merged.items() if coeff != 0),
            key=lambda item: str(item[0]),
        )))

    def __str__(self) -> str:
        parts = [str(atom) if coeff == 1 else f"{coeff}*{atom}" for atom, coeff in self.terms]
        if self.affine != DimExpr(0) or not parts:
            parts.append(str(self.affine))
        return " + ".join(parts).replace("+ -", "- ")


IndexExpr = DimExpr | FloorDiv | FloorMod | IndexSum


def _is_index_operand(value: object) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (DimExpr, _QuasiAffine, int, np.integer))


def _as_index_sum(expr: IndexExpr | int) -> IndexSum:
    if isinstance(expr, IndexSum):
        return expr
    if isinstance(expr, (FloorDiv, FloorMod)):
        return IndexSum(DimExpr(0), ((expr, 1),))
    return IndexSum(as_dim(expr), ())


def _index_sum(affine: DimExpr, terms: tuple[tuple[FloorDiv | FloorMod, int], ...]) -> IndexExpr:
    result = IndexSum(affine, terms)
    return result if result.terms else result.affine


def index_expr_symbols(expr: IndexExpr) -> frozenset[Symbol]:
    if isinstance(expr, DimExpr):
        return expr.symbols
    if isinstance(expr, IndexSum):
        return expr.affine.symbols.union(*(index_expr_symbols(atom) for atom, _ in expr.terms))
    return index_expr_symbols(expr.lhs)


@dataclass(frozen=True)
class IndexMap:
    in_axes: tuple[Symbol, ...]
    out: tuple[IndexExpr, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "in_axes", tuple(self.in_axes))
        object.__setattr__(
            self, "out", tuple(e if isinstance(e, _QuasiAffine) else as_dim(e) for e in self.out)
        )
        if len(set(self.in_axes)) != len(self.in_axes):
            raise ValueError(f"Index map input axes must be distinct: {self.in_axes}.")

    @property
    def initial_ndim(self) -> int:
        return len(self.in_axes)

    @property
    def final_ndim(self) -> int:
        return len(self.out)

    @staticmethod
    def from_func(
        ndim: int, func: Callable[..., Iterable[IndexExpr | int] | IndexExpr | int], prefix: str = "i"
    ) -> IndexMap:
        axes = tuple(Symbol(f"{prefix}{k}") for k in range(ndim))
        out = func(*(DimExpr(0, {axis: 1}) for axis in axes))
        if _is_index_operand(out):
            out = (out,)
        return IndexMap(in_axes=axes, out=tuple(out))


@dataclass(frozen=True)
class TensorType:
    dtype: DType | None = None
    shape: Shape | None = None
    ndim: int | None = None

    def __post_init__(self) -> None:
        if self.shape is not None:
            shape = as_shape(self.shape)
            if self.ndim is not None and self.ndim != len(shape):
                raise ValueError(f"ndim {self.ndim} does not match shape of rank {len(shape)}.")
            object.__setattr__(self, "shape", shape)
            object.__setattr__(self, "ndim", len(shape))
        elif self.ndim is not None and self.ndim < 0:
            raise ValueError(f"ndim must be non-negative, got {self.ndim}.")

    @property
    def is_static(self) -> bool:
        return self.shape is not None and all(d.is_static for d in self.shape)

    @property
    def static_shape(self) -> tuple[int, ...] | None:
        if not self.is_static:
            return None
        assert self.shape is not None
        return tuple(d.value for d in self.shape)


@dataclass(frozen=True)
class ShapeType:
    values: Shape | None = None
    ndim: int | None = None

    def __post_init__(self) -> None:
        if self.values is not None:
            values = as_shape(self.values)
            if self.ndim is not None and self.ndim != len(values):
                raise ValueError(f"ndim {self.ndim} does not match {len(values)} shape values.")
            object.__setattr__(self, "values", values)
            object.__setattr__(self, "ndim", len(values))


@dataclass(frozen=True)
class PrimType:
    dtype: DType


@dataclass(frozen=True)
class TupleType:
    fields: tuple[Type, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))


Type = TensorType | ShapeType | PrimType | TupleType

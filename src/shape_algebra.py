from collections import Counter
from collections.abc import Iterable, Sequence
from itertools import combinations

from ir_errors import ShapeError
from tensor_ir import DimExpr, Relation, Shape, TensorType, compare


def normalize_axis(op: str, axis: int, ndim: int) -> int:
    if not -ndim <= axis < ndim:
        raise ShapeError(op, f"axis {axis} out of range for rank {ndim}")
    return axis + ndim if axis < 0 else axis


def normalize_axes(op: str, axes: Sequence[int], ndim: int) -> tuple[int, ...]:
    resolved = tuple(normalize_axis(op, axis, ndim) for axis in axes)
    if len(set(resolved)) != len(resolved):
        raise ShapeError(op, f"axes {tuple(axes)} contain duplicates after resolution against rank {ndim}")
    return resolved


def shape_product(shape: Iterable[DimExpr]) -> DimExpr:
    product = DimExpr(1)
    for d in shape:
        product = product * d
    return product


def exact_div(numerator: DimExpr, denominator: DimExpr) -> DimExpr | None:
    if numerator == denominator and numerator != DimExpr(0):
        return DimExpr(1)
    if denominator.is_static:
        d = denominator.value
        if d == 0 or numerator.base % d or any(coeff % d for _, coeff in numerator.terms):
            return None
        return DimExpr(numerator.base // d, tuple((mono, coeff // d) for mono, coeff in numerator.terms))
    if denominator.base != 0 or len(denominator.terms) != 1 or numerator.base != 0:
        return None
    ((div_mono, div_coeff),) = denominator.terms
    div_counts = Counter(div_mono)
    quotient: list[tuple[tuple, int]] = []
    for mono, coeff in numerator.terms:
        counts = Counter(mono)
        if coeff % div_coeff or any(counts[sym] < n for sym, n in div_counts.items()):
            return None
        rest = tuple(sorted((counts - div_counts).elements()))
        if rest:
            quotient.append((rest, coeff // div_coeff))
            continue
        quotient.append(((), coeff // div_coeff))
    base = sum(coeff for mono, coeff in quotient if not mono)
    return DimExpr(base, tuple(item for item in quotient if item[0]))


def ceil_div(numerator: DimExpr, divisor: int) -> DimExpr | None:
    if numerator.is_static:
        return DimExpr(-(-numerator.value // divisor))
    return exact_div(numerator, DimExpr(divisor))


def is_one(d: DimExpr) -> Relation:
    return compare(d, 1)


def broadcast_dim(op: str, lhs: DimExpr, rhs: DimExpr) -> DimExpr | None:
    if compare(lhs, rhs) == Relation.EQUAL:
        return lhs
    if is_one(lhs) == Relation.EQUAL:
        return rhs
    if is_one(rhs) == Relation.EQUAL:
        return lhs
    if lhs.is_static and rhs.is_static:
        raise ShapeError(op, f"dimensions {lhs} and {rhs} cannot be broadcast together")
    return None


def broadcast_shapes(op: str, shapes: Sequence[Shape]) -> Shape | None:
    ndim = max((len(s) for s in shapes), default=0)
    result: list[DimExpr | None] = [DimExpr(1)] * ndim
    for shape in shapes:
        offset = ndim - len(shape)
        for i, d in enumerate(shape):
            current = result[offset + i]
            result[offset + i] = None if current is None else broadcast_dim(op, current, d)
    if any(d is None for d in result):
        return None
    return tuple(d for d in result if d is not None)


def check_broadcastable_to(op: str, source: Shape, target: Shape, what: str = "source") -> bool:
    if len(source) > len(target):
        raise ShapeError(op, f"{what} of rank {len(source)} cannot broadcast to rank {len(target)}")
    proven = True
    offset = len(target) - len(source)
    for i, d in enumerate(source):
        t = target[offset + i]
        rel = compare(d, t)
        if rel == Relation.EQUAL or is_one(d) == Relation.EQUAL:
            continue
        if d.is_static and t.is_static:
            raise ShapeError(
                op, f"{what} dimension {i} of size {d} is neither 1 nor equal to target size {t}"
            )
        proven = False
    return proven


def match_dims(op: str, lhs: Shape, rhs: Shape, what: str, skip_axis: int | None = None) -> bool:
    if len(lhs) != len(rhs):
        raise ShapeError(op, f"{what}: rank {len(lhs)} does not match rank {len(rhs)}")
    proven = True
    for i, (a, b) in enumerate(zip(lhs, rhs)):
        if i == skip_axis:
            continue
        rel = compare(a, b)
        if rel == Relation.NOT_EQUAL:
            raise ShapeError(op, f"{what}: dimension {i} differs ({a} vs {b})")
        if rel == Relation.UNKNOWN:
            proven = False
    return proven


def unify_ndim(op: str, types: Iterable[TensorType], what: str) -> int | None:
    ndim: int | None = None
    for ty in types:
        if ty.ndim is None:
            continue
        if ndim is not None and ty.ndim != ndim:
            raise ShapeError(op, f"{what} must have the same rank, got {ndim} and {ty.ndim}")
        ndim = ty.ndim
    return ndim



# unproven axes keep a static candidate when there is one, else the first input's dim
def merge_dims(
    op: str, shapes: Sequence[Shape], what: str, skip_axis: int | None = None
) -> tuple[Shape, tuple[int, ...]]:
    for other in shapes[1:]:
        if len(other) != len(shapes[0]):
            raise ShapeError(op, f"{what}: rank {len(shapes[0])} does not match rank {len(other)}")
    merged: list[DimExpr] = []
    unproven: list[int] = []
    for i, dims in enumerate(zip(*shapes)):
        if i != skip_axis:
            relations = [compare(a, b) for a, b in combinations(dims, 2)]
            for (a, b), rel in zip(combinations(dims, 2), relations):
                if rel == Relation.NOT_EQUAL:
                    raise ShapeError(op, f"{what}: dimension {i} differs ({a} vs {b})")
            if any(rel == Relation.UNKNOWN for rel in relations):
                unproven.append(i)
        merged.append(next((d for d in dims if d.is_static), dims[0]))
    return tuple(merged), tuple(unproven)

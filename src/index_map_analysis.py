from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import islpy as isl

from ir_errors import SchemaError, ShapeError
from tensor_ir import DimExpr, FloorDiv, FloorMod, IndexExpr, IndexMap, IndexSum, Symbol, index_expr_symbols


@dataclass(frozen=True)
class MappedShape:
    shape: tuple[int, ...]
    padded: bool


def check_index_map(op: str, index_map: IndexMap, ndim: int | None) -> None:
    if ndim is not None and index_map.initial_ndim != ndim:
        raise ShapeError(op, f"index map takes {index_map.initial_ndim} axes but the input has rank {ndim}")
    known = set(index_map.in_axes)
    for k, expr in enumerate(index_map.out):
        stray = index_expr_symbols(expr) - known
        if stray:
            names = sorted(sym.name for sym in stray)
            raise ShapeError(op, f"index map output {k} references axes {names} outside the input")


def map_shape(op: str, index_map: IndexMap, shape: Sequence[int]) -> MappedShape | None:
    check_index_map(op, index_map, len(shape))
    # an empty domain has no image to measure
    if any(extent == 0 for extent in shape):
        return None

    names = {axis: f"i{k}" for k, axis in enumerate(index_map.in_axes)}
    in_tuple = ", ".join(names.values())
    out_names = [f"o{k}" for k in range(index_map.final_ndim)]
    out_tuple = ", ".join(out_names)

    ctx = isl.Context()
    domain_constraints = " and ".join(
        f"0 <= {names[axis]} < {extent}" for axis, extent in zip(index_map.in_axes, shape)
    )
    domain = isl.Set.read_from_str(ctx, f"{{ [{in_tuple}] : {domain_constraints or 'true'} }}")
    map_constraints = " and ".join(
        f"{name} = {_render(op, expr, names)}" for name, expr in zip(out_names, index_map.out)
    )
    mapping = isl.Map.read_from_str(ctx, f"{{ [{in_tuple}] -> [{out_tuple}] : {map_constraints or 'true'} }}")
    if not mapping.intersect_domain(domain).is_injective():
        raise ShapeError(op, "index map sends distinct input elements to the same output index")
    image = domain.apply(mapping)

    extents: list[int] = []
    for pos in range(index_map.final_ndim):
        lo, hi = _axis_bounds(image, pos)
        if lo < 0:
            raise ShapeError(op, f"index map output {pos} produces negative index {lo}")
        extents.append(hi + 1)

    box_constraints = " and ".join(f"0 <= {name} < {extent}" for name, extent in zip(out_names, extents))
    box = isl.Set.read_from_str(ctx, f"{{ [{out_tuple}] : {box_constraints or 'true'} }}")
    return MappedShape(shape=tuple(extents), padded=not box.is_subset(image))


def _axis_bounds(image: isl.Set, pos: int) -> tuple[int, int]:
    n = image.dim(isl.dim_type.set)
    axis_set = image.project_out(isl.dim_type.set, pos + 1, n - pos - 1).project_out(isl.dim_type.set, 0, pos)
    lo = axis_set.lexmin().sample_point().get_coordinate_val(isl.dim_type.set, 0).to_python()
    hi = axis_set.lexmax().sample_point().get_coordinate_val(isl.dim_type.set, 0).to_python()
    return int(lo), int(hi)


def _render(op: str, expr: IndexExpr, names: dict[Symbol, str]) -> str:
    if isinstance(expr, FloorDiv):
        return f"floor(({_render(op, expr.lhs, names)}) / {expr.divisor})"
    if isinstance(expr, FloorMod):
        return f"(({_render(op, expr.lhs, names)}) mod {expr.divisor})"
    if isinstance(expr, IndexSum):
        rendered = _render_affine(op, expr.affine, names)
        for atom, coeff in expr.terms:
            sign = "-" if coeff < 0 else "+"
            rendered += f" {sign} {abs(coeff)}*{_render(op, atom, names)}"
        return rendered
    return _render_affine(op, expr, names)


def _render_affine(op: str, expr: DimExpr, names: dict[Symbol, str]) -> str:
    rendered = str(expr.base)
    for mono, coeff in expr.terms:
        if len(mono) != 1:
            raise SchemaError(op, f"index map expression {expr} is not quasi-affine")
        sign = "-" if coeff < 0 else "+"
        rendered += f" {sign} {abs(coeff)}*{names[mono[0]]}"
    return rendered


# only maps that reorder axes are followed symbolically
def forward_symbolic_shape(index_map: IndexMap, shape: Sequence[DimExpr]) -> tuple[DimExpr, ...] | None:
    position = {axis: k for k, axis in enumerate(index_map.in_axes)}
    result: list[DimExpr] = []
    used: set[int] = set()
    for expr in index_map.out:
        if not isinstance(expr, DimExpr) or expr.base != 0 or len(expr.terms) != 1:
            return None
        ((mono, coeff),) = expr.terms
        if len(mono) != 1 or coeff != 1:
            return None
        used.add(position[mono[0]])
        result.append(shape[position[mono[0]]])
    if len(used) != len(result) or len(used) != len(position):
        return None
    return tuple(result)

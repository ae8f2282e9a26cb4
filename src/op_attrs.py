from __future__ import annotations

from dataclasses import MISSING, dataclass, field
from enum import Enum, auto
from typing import Any

from graph_ir import PrimValue
from tensor_ir import IndexMap


class AttrKind(Enum):
    INT = auto()
    OPTIONAL_INT = auto()
    INT_ARRAY = auto()
    OPTIONAL_INT_ARRAY = auto()
    INT_OR_INT_ARRAY = auto()
    BOOL = auto()
    STRING = auto()
    INDEX_MAP = auto()
    OPTIONAL_PRIM_VALUE = auto()


def attr(kind: AttrKind, default: Any = MISSING, *, choices: tuple[str, ...] = (), minimum: int | None = None) -> Any:
    metadata = {"kind": kind, "choices": choices, "minimum": minimum}
    if default is MISSING:
        return field(metadata=metadata)
    return field(default=default, metadata=metadata)


SCATTER_ELEMENTS_REDUCTIONS = ("update", "add", "mul", "mean", "max", "min")
SCATTER_ND_REDUCTIONS = ("update", "add", "mul", "max", "min")
MESHGRID_INDEXING = ("ij", "xy")


@dataclass(frozen=True)
class BroadcastToAttrs:
    pass


@dataclass(frozen=True)
class ConcatAttrs:
    axis: int | None = attr(AttrKind.OPTIONAL_INT, 0)


@dataclass(frozen=True)
class ExpandDimsAttrs:
    axis: tuple[int, ...] = attr(AttrKind.INT_ARRAY)


@dataclass(frozen=True)
class FlattenAttrs:
    pass


@dataclass(frozen=True)
class LayoutTransformAttrs:
    index_map: IndexMap = attr(AttrKind.INDEX_MAP)
    pad_value: PrimValue | None = attr(AttrKind.OPTIONAL_PRIM_VALUE, None)
    axis_separators: tuple[int, ...] | None = attr(AttrKind.OPTIONAL_INT_ARRAY, None)
    input_axis_separators: tuple[int, ...] | None = attr(AttrKind.OPTIONAL_INT_ARRAY, None)


@dataclass(frozen=True)
class PermuteDimsAttrs:
    axes: tuple[int, ...] | None = attr(AttrKind.OPTIONAL_INT_ARRAY, None)


@dataclass(frozen=True)
class ReshapeAttrs:
    pass


@dataclass(frozen=True)
class SplitAttrs:
    indices_or_sections: int | tuple[int, ...] = attr(AttrKind.INT_OR_INT_ARRAY)
    axis: int = attr(AttrKind.INT, 0)


@dataclass(frozen=True)
class SqueezeAttrs:
    axis: tuple[int, ...] | None = attr(AttrKind.OPTIONAL_INT_ARRAY, None)


@dataclass(frozen=True)
class StackAttrs:
    axis: int = attr(AttrKind.INT, 0)


@dataclass(frozen=True)
class CollapseSumToAttrs:
    pass


@dataclass(frozen=True)
class CollapseSumLikeAttrs:
    pass


@dataclass(frozen=True)
class RepeatAttrs:
    repeats: int = attr(AttrKind.INT, minimum=1)
    axis: int | None = attr(AttrKind.OPTIONAL_INT, None)


@dataclass(frozen=True)
class TileAttrs:
    repeats: tuple[int, ...] = attr(AttrKind.INT_ARRAY, minimum=0)


@dataclass(frozen=True)
class FlipAttrs:
    axis: int = attr(AttrKind.INT)


@dataclass(frozen=True)
class GatherElementsAttrs:
    axis: int = attr(AttrKind.INT, 0)


@dataclass(frozen=True)
class GatherNDAttrs:
    batch_dims: int = attr(AttrKind.INT, 0, minimum=0)


@dataclass(frozen=True)
class IndexTensorAttrs:
    pass


@dataclass(frozen=True)
class IndexPutAttrs:
    accumulate: bool = attr(AttrKind.BOOL, False)


@dataclass(frozen=True)
class MeshgridAttrs:
    indexing: str = attr(AttrKind.STRING, "ij", choices=MESHGRID_INDEXING)


@dataclass(frozen=True)
class ScatterElementsAttrs:
    axis: int = attr(AttrKind.INT, 0)
    reduction: str = attr(AttrKind.STRING, "update", choices=SCATTER_ELEMENTS_REDUCTIONS)


@dataclass(frozen=True)
class ScatterNDAttrs:
    reduction: str = attr(AttrKind.STRING, "update", choices=SCATTER_ND_REDUCTIONS)


@dataclass(frozen=True)
class OneHotAttrs:
    depth: int = attr(AttrKind.INT, minimum=1)
    axis: int = attr(AttrKind.INT, -1)


OpAttrs = (
    BroadcastToAttrs
    | ConcatAttrs
    | ExpandDimsAttrs
    | FlattenAttrs
    | LayoutTransformAttrs
    | PermuteDimsAttrs
    | ReshapeAttrs
    | SplitAttrs
    | SqueezeAttrs
    | StackAttrs
    | CollapseSumToAttrs
    | CollapseSumLikeAttrs
    | RepeatAttrs
    | TileAttrs
    | FlipAttrs
    | GatherElementsAttrs
    | GatherNDAttrs
    | IndexTensorAttrs
    | IndexPutAttrs
    | MeshgridAttrs
    | ScatterElementsAttrs
    | ScatterNDAttrs
    | OneHotAttrs
)

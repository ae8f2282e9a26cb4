import logging
from dataclasses import dataclass

from tensor_ir import DType


@dataclass(frozen=True)
class BuildConfig:
    index_dtypes: frozenset[DType] = frozenset({DType.INT32, DType.INT64})
    deferred_check_log_level: int = logging.DEBUG

    def __post_init__(self) -> None:
        object.__setattr__(self, "index_dtypes", frozenset(self.index_dtypes))
        for dtype in self.index_dtypes:
            if not dtype.is_integer:
                raise ValueError(f"Index dtypes must be integer types, got {dtype}.")


DEFAULT_CONFIG = BuildConfig()

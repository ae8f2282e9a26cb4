from dataclasses import dataclass


class InvalidArgument(ValueError):
    def __init__(self, op: str, message: str):
        super().__init__(f"{op}: {message}")
        self.op = op


class SchemaError(InvalidArgument):
    pass


class ShapeError(InvalidArgument):
    pass


class DTypeError(InvalidArgument):
    pass


@dataclass(frozen=True)
class DeferredRuntimeCheck:
    op: str
    condition: str

    def __str__(self) -> str:
        return f"{self.op}: {self.condition}"

import pytest

from graph_ir import PrimValue, ShapeExpr, Tuple, Var, prim_value, tensor_var
from ir_errors import InvalidArgument, SchemaError
from op_attrs import ConcatAttrs, LayoutTransformAttrs, ScatterElementsAttrs, SplitAttrs
from op_registry import _REGISTRY, ArgRole, get_op, list_ops
from tensor_ir import DType, IndexMap


def _tensor(shape, dtype: DType = DType.FLOAT32, name: str = "x") -> Var:
    return tensor_var(name, shape, dtype)


def test_registry_lists_every_operator():
    names = list_ops()
    assert len(names) == 23
    assert {"reshape", "layout_transform", "scatter_nd", "one_hot", "collapse_sum_like"} <= set(names)


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        _REGISTRY["reshape"] = get_op("flatten")  # type: ignore[index]


def test_unknown_operator():
    with pytest.raises(SchemaError, match="unknown operator"):
        get_op("transpose")


def test_arg_roles():
    op = get_op("index_put")
    assert [spec.role for spec in op.args] == [ArgRole.TENSOR, ArgRole.TENSOR_TUPLE, ArgRole.TENSOR]


def test_make_attrs_defaults():
    assert get_op("concat").make_attrs() == ConcatAttrs(axis=0)
    attrs = get_op("scatter_elements").make_attrs()
    assert attrs == ScatterElementsAttrs(axis=0, reduction="update")


def test_make_attrs_unifies_sequences():
    attrs = get_op("split").make_attrs(indices_or_sections=[2, 5], axis=1)
    assert attrs == SplitAttrs(indices_or_sections=(2, 5), axis=1)


def test_make_attrs_rejects_unknown_attribute():
    with pytest.raises(SchemaError, match="unknown attribute"):
        get_op("concat").make_attrs(axes=1)


def test_make_attrs_rejects_missing_attribute():
    with pytest.raises(SchemaError, match="missing required attribute 'axis'"):
        get_op("flip").make_attrs()


@pytest.mark.parametrize(
    "op, values",
    [
        ("scatter_elements", {"reduction": "xor"}),
        ("scatter_nd", {"reduction": "mean"}),
        ("meshgrid", {"indexing": "yx"}),
        ("repeat", {"repeats": 0}),
        ("one_hot", {"depth": 0}),
        ("gather_nd", {"batch_dims": -1}),
        ("tile", {"repeats": (2, -1)}),
        ("flip", {"axis": 1.5}),
        ("flip", {"axis": True}),
        ("expand_dims", {"axis": "0"}),
        ("index_put", {"accumulate": 1}),
    ],
)
def test_make_attrs_rejects_out_of_domain_values(op, values):
    attrs = {"depth": 4} if op == "one_hot" else {}
    attrs.update(values)
    with pytest.raises(SchemaError):
        get_op(op).make_attrs(**attrs)


def test_make_attrs_wraps_pad_value():
    index_map = IndexMap.from_func(1, lambda i: (i // 4, i % 4))
    attrs = get_op("layout_transform").make_attrs(index_map=index_map, pad_value=0)
    assert isinstance(attrs, LayoutTransformAttrs)
    assert attrs.pad_value == PrimValue(0, DType.INT64)


def test_check_args_arity_and_roles():
    op = get_op("reshape")
    x = _tensor((2, 3))
    op.check_args([x, ShapeExpr((3, 2))])
    with pytest.raises(SchemaError, match="expects 2 argument"):
        op.check_args([x])
    with pytest.raises(SchemaError, match="argument 'shape'"):
        op.check_args([x, x])
    with pytest.raises(SchemaError, match="must be an Expr"):
        op.check_args([x, (3, 2)])
    with pytest.raises(SchemaError, match="argument 'tensors'"):
        get_op("concat").check_args([Tuple((x, prim_value(1)))])


def test_schema_errors_are_value_errors():
    with pytest.raises(ValueError) as excinfo:
        get_op("concat").make_attrs(axes=1)
    assert isinstance(excinfo.value, InvalidArgument)
    assert excinfo.value.op == "concat"
    assert str(excinfo.value).startswith("concat: ")

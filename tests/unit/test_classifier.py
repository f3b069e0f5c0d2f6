"""Unit tests for the namespace filter and type classifier."""

from __future__ import annotations

import pytest

from asmgraph.analysis.classifier import TypeCategory, TypeClassifier, classify, split_methods
from asmgraph.analysis.metadata import MethodRecord, TypeDefinition, TypeRef
from asmgraph.analysis.namespaces import DEFAULT_EXCLUDED_NAMESPACES, NamespaceFilter

MOD = "Shop.dll"


def _type(full_name: str, namespace: str | None = None, **flags: bool) -> TypeDefinition:
    if namespace is None:
        namespace = full_name.rpartition(".")[0]
    return TypeDefinition(ref=TypeRef(full_name, MOD), namespace=namespace, **flags)


# --- NamespaceFilter ---


@pytest.mark.parametrize("namespace", ["Shop", "Shop.Orders", "Acme.System"])
def test_program_namespaces_are_in_scope(namespace: str) -> None:
    assert NamespaceFilter().is_in_scope(namespace) is True


@pytest.mark.parametrize(
    "namespace",
    ["System", "System.Collections", "Microsoft.Extensions", "Mono.Cecil", "", None],
)
def test_platform_and_empty_namespaces_are_out_of_scope(namespace: str | None) -> None:
    assert NamespaceFilter().is_in_scope(namespace) is False


def test_default_prefixes() -> None:
    assert NamespaceFilter().excluded_prefixes == DEFAULT_EXCLUDED_NAMESPACES


def test_custom_prefixes_replace_defaults() -> None:
    f = NamespaceFilter(["Newtonsoft"])
    assert f.is_in_scope("Newtonsoft.Json") is False
    assert f.is_in_scope("System.Text") is True


def test_empty_prefix_is_ignored() -> None:
    assert NamespaceFilter(["", "Vendor"]).is_in_scope("Shop") is True


# --- classify / partition ---


def test_classify_categories() -> None:
    assert classify(_type("Shop.Cart")) is TypeCategory.CLASS
    assert classify(_type("Shop.ICart", is_interface=True)) is TypeCategory.INTERFACE
    assert classify(_type("Shop.Color", is_enum=True, is_value_type=True)) is TypeCategory.ENUM
    assert classify(_type("Shop.Money", is_value_type=True)) is TypeCategory.VALUE_TYPE


def test_partition_keeps_classes_and_interfaces_in_order() -> None:
    types = [
        _type("<Module>", namespace=""),
        _type("Shop.Cart"),
        _type("Shop.ICart", is_interface=True),
        _type("Shop.Color", is_enum=True, is_value_type=True),
        _type("Shop.Money", is_value_type=True),
        _type("System.Runtime.CompilerServices.NullableAttribute"),
        _type("Shop.Order"),
        _type("Shop.Cart/Line", namespace=""),
    ]
    result = TypeClassifier(NamespaceFilter()).partition(types)
    assert [t.full_name for t in result.classes] == ["Shop.Cart", "Shop.Order"]
    assert [t.full_name for t in result.interfaces] == ["Shop.ICart"]


def test_split_methods() -> None:
    owner = TypeRef("Shop.Cart", MOD)
    cctor = MethodRecord(".cctor", owner, is_constructor=True)
    ctor = MethodRecord(".ctor", owner, is_constructor=True)
    add = MethodRecord("Add", owner)
    total = MethodRecord("get_Total", owner)
    constructors, methods = split_methods([add, cctor, total, ctor])
    assert constructors == [cctor, ctor]
    assert methods == [add, total]

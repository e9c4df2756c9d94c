import pytest

from omen.core.schema import Any, Invalid, Nullable, Optional, Schema, SchemaError


def test_static_types():
    assert Schema(int)(3) == 3
    assert Schema(float)(3) == 3.0
    assert Schema(str)("x") == "x"
    with pytest.raises(Invalid):
        Schema(int)(True)
    with pytest.raises(Invalid):
        Schema(str)(3)


def test_literal_choices():
    schema = Schema(Any("sqlite", "mysql"))
    assert schema("mysql") == "mysql"
    with pytest.raises(Invalid):
        schema("postgres")


def test_optional_defaults_are_filled():
    schema = Schema({"type": str,
                     Optional("cooldown", 3): int,
                     Optional("cache", dict): {Optional("size", 1000): int},
                     Optional("hooks", list): [str],
                     Optional("notifier"): Nullable(str)})
    assert schema({"type": "sqlite"}) == {"type": "sqlite", "cooldown": 3,
                                          "cache": {"size": 1000}, "hooks": [],
                                          "notifier": None}


def test_missing_required_key():
    with pytest.raises(Invalid):
        Schema({"type": str})({})


def test_nested_errors_include_path():
    schema = Schema({Optional("cache", dict): {Optional("size", 1000): int}})
    with pytest.raises(Invalid) as info:
        schema({"cache": {"size": "big"}})
    assert ".cache.size" in str(info.value)


def test_typed_keys_and_passthrough():
    schema = Schema({str: {"path": str}})
    assert schema({"a": {"path": "x.Y", "extra": 1}}) == {"a": {"path": "x.Y", "extra": 1}}
    with pytest.raises(Invalid):
        schema({"a": {}})


def test_lists():
    assert Schema([int])([1, 2]) == [1, 2]
    with pytest.raises(Invalid):
        Schema([int])([1, "2"])
    with pytest.raises(Invalid):
        Schema([int])("12")


def test_base_schema_is_extended():
    base = Schema({"a": int})
    assert Schema({"b": int}, base)({"a": 1, "b": 2}) == {"a": 1, "b": 2}
    with pytest.raises(SchemaError):
        Schema([int], base)


def test_unknown_schema_type():
    with pytest.raises(SchemaError):
        Schema(object())(1)

"""Unit tests for tool-argument normalisation."""

from __future__ import annotations

import json

import pytest

from llm_react_toolkit.tools.arguments import EMPTY_ARGUMENT_LITERALS, parse_arguments


class TestEmptyLiterals:
    @pytest.mark.parametrize("literal", sorted(EMPTY_ARGUMENT_LITERALS))
    def test_literal_yields_empty_object(self, literal: str) -> None:
        parsed = parse_arguments(literal, "demo")
        assert parsed == {}
        assert json.dumps(parsed) == "{}"

    def test_padded_literal(self) -> None:
        assert parse_arguments("  null \n") == {}


class TestNonStringInput:
    def test_mapping_is_copied(self) -> None:
        raw = {"a": 1}
        parsed = parse_arguments(raw)
        assert parsed == {"a": 1}
        assert parsed is not raw

    def test_empty_mapping_stays_mapping(self) -> None:
        assert parse_arguments({}) == {}

    def test_none_and_nan(self) -> None:
        assert parse_arguments(None) == {}
        assert parse_arguments(float("nan")) == {}

    def test_scalar_is_wrapped(self) -> None:
        assert parse_arguments(42) == {"value": 42}
        assert parse_arguments(True) == {"value": True}

    def test_list_input(self) -> None:
        assert parse_arguments([1, 2]) == {"value": [1, 2]}
        assert parse_arguments([]) == {}

    def test_bytes_are_decoded(self) -> None:
        assert parse_arguments(b'{"a": 1}') == {"a": 1}


class TestStringStrategies:
    def test_valid_json(self) -> None:
        assert parse_arguments('{"city": "Paris"}') == {"city": "Paris"}

    def test_cheap_repair(self) -> None:
        assert parse_arguments("{'city': \"Paris\"}") == {"city": "Paris"}
        assert parse_arguments('{"a": 1,}') == {"a": 1}

    def test_truncated_json(self) -> None:
        assert parse_arguments('{"city": "Paris", "days": [1, 2') == {
            "city": "Paris",
            "days": [1, 2],
        }

    def test_bare_keys(self) -> None:
        assert parse_arguments('{city: "Paris"}') == {"city": "Paris"}

    def test_double_encoded_object(self) -> None:
        assert parse_arguments(json.dumps('{"a": 1}')) == {"a": 1}

    def test_non_object_json_is_wrapped(self) -> None:
        assert parse_arguments("42") == {"value": 42}
        assert parse_arguments("[1, 2]") == {"value": [1, 2]}

    def test_garbage_yields_empty(self) -> None:
        assert parse_arguments("not json at all", "demo") == {}

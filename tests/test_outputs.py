"""Tests for selectors and output descriptors."""

import pytest

from stepdoc.exceptions import InvalidNameError, InvalidSelectorError, SelectorNotFoundError, TypeCoercionError
from stepdoc.outputs import OutputDescriptor, compile_selector
from stepdoc.variables import DataType


class TestSelector:
    """Single-value selector compilation and evaluation."""

    def test_root_selector(self):
        selector = compile_selector("$")
        assert selector.segments == ()
        assert selector.evaluate({"a": 1}) == {"a": 1}

    def test_nested_fields_and_indexes(self):
        selector = compile_selector("$.Payload.items[1].id")
        assert selector.segments == ("Payload", "items", 1, "id")

        data = {"Payload": {"items": [{"id": "a"}, {"id": "b"}]}}
        assert selector.evaluate(data) == "b"

    def test_quoted_key(self):
        selector = compile_selector("$['Odd Key'].x")
        assert selector.evaluate({"Odd Key": {"x": 5}}) == 5

    @pytest.mark.parametrize("text", ["Payload", "$.", "$[abc]", "$.a..b", "$.a[*]"])
    def test_invalid_selectors(self, text):
        with pytest.raises(InvalidSelectorError) as exc_info:
            compile_selector(text)

        assert exc_info.value.exit_code == 2

    def test_missing_key(self):
        with pytest.raises(SelectorNotFoundError) as exc_info:
            compile_selector("$.Payload.missing").evaluate({"Payload": {}})

        assert "missing key 'missing'" in str(exc_info.value)

    def test_index_out_of_range(self):
        with pytest.raises(SelectorNotFoundError):
            compile_selector("$.items[3]").evaluate({"items": [1, 2]})

    def test_wrong_container(self):
        with pytest.raises(SelectorNotFoundError):
            compile_selector("$.items[0]").evaluate({"items": "abc"})
        with pytest.raises(SelectorNotFoundError):
            compile_selector("$.a.b").evaluate({"a": [1]})


class TestOutputDescriptor:
    """Descriptors extract and coerce one value each."""

    def test_extract_coerces(self):
        descriptor = OutputDescriptor("ExitCode", DataType.INTEGER, "$.ExitCode")
        assert descriptor.extract({"ExitCode": "0"}) == 0

    def test_extract_type_error(self):
        descriptor = OutputDescriptor("Count", DataType.INTEGER, "$.Count")
        with pytest.raises(TypeCoercionError):
            descriptor.extract({"Count": "several"})

    def test_invalid_selector_fails_at_definition(self):
        with pytest.raises(InvalidSelectorError):
            OutputDescriptor("Bad", DataType.STRING, "Payload.x")

    def test_invalid_name(self):
        with pytest.raises(InvalidNameError):
            OutputDescriptor("bad.name", DataType.STRING, "$.x")

    def test_to_entry(self):
        descriptor = OutputDescriptor("Total", "Integer", "$.Payload.total")
        assert descriptor.output_type == DataType.INTEGER
        assert descriptor.to_entry() == {"Name": "Total", "Selector": "$.Payload.total", "Type": "Integer"}

"""Tests for error kinds."""

import pytest

from memoff.core import errors
from memoff.core.errors import ErrorKind, MemoffError
from memoff.mcp.validation import ErrorCode, error_from_exception

CONCRETE = [
    errors.DocumentNotFoundError,
    errors.DocumentExistsError,
    errors.RangeOutOfBoundsError,
    errors.BoundaryMismatchError,
    errors.NoMatchError,
    errors.UnresolvablePathError,
    errors.AmbiguousMatchError,
    errors.UnknownLocatorError,
]


class TestErrorKinds:
    def test_base_has_no_kind(self):
        assert not hasattr(MemoffError, "kind")

    @pytest.mark.parametrize("cls", CONCRETE)
    def test_every_error_declares_its_kind(self, cls):
        assert isinstance(cls.kind, ErrorKind)

    def test_each_kind_has_a_class(self):
        assert {cls.kind for cls in CONCRETE} == set(ErrorKind)

    @pytest.mark.parametrize("cls", CONCRETE)
    def test_kinds_map_to_specific_codes(self, cls):
        result = error_from_exception(cls("boom"))
        assert result["error_kind"] == cls.kind.value
        assert result["error_code"] != ErrorCode.SYSTEM_ERROR.value

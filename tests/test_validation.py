"""Tests for input validation helpers."""

from datetime import datetime, timezone

import pytest

from zonealert.errors import ValidationError
from zonealert.utils import parse_iso_date, require_doc_id, validate_doc_id, validate_identification_tag


class TestDocIds:

    @pytest.mark.parametrize("doc_id", ["8Hk2aV0pLq", "breach_abc-123", "a"])
    def test_valid(self, doc_id):
        assert validate_doc_id(doc_id)
        assert require_doc_id(doc_id) == doc_id

    @pytest.mark.parametrize("doc_id", ["", "a/b", "..", "x" * 129])
    def test_invalid(self, doc_id):
        assert not validate_doc_id(doc_id)
        with pytest.raises(ValidationError):
            require_doc_id(doc_id, "sensor_id")


class TestTags:

    @pytest.mark.parametrize("tag", ["GT-001", "COW 12", "rfid/0042"])
    def test_valid(self, tag):
        assert validate_identification_tag(tag)

    @pytest.mark.parametrize("tag", ["", "-GT", "!!bad", "T" * 51])
    def test_invalid(self, tag):
        assert not validate_identification_tag(tag)


class TestParseIsoDate:

    def test_empty_is_none(self):
        assert parse_iso_date(None) is None
        assert parse_iso_date("") is None

    def test_zulu_suffix(self):
        assert parse_iso_date("2024-03-10T12:00:00Z") == datetime(2024, 3, 10, 12, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_iso_date("2024-03-10").tzinfo == timezone.utc

    def test_garbage(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_iso_date("last tuesday", "start_date")
        assert exc_info.value.errors[0]["field"] == "start_date"

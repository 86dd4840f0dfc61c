"""Tests for the content payload model."""

import pytest

from refcache.exceptions import ParseError
from refcache.payload import ContentPayload


class TestFromDict:
    """Test building payloads from decoded JSON."""

    def test_envelope_form(self):
        """Test that a body key is used as the body."""
        payload = ContentPayload.from_dict(
            {"version": "abc123", "lastUpdated": 1700000000000, "body": {"perks": []}}
        )

        assert payload.version == "abc123"
        assert payload.last_updated == 1700000000000
        assert payload.body == {"perks": []}

    def test_flat_form_collects_remaining_keys(self):
        """Test the perks.json shape where records sit beside the version fields."""
        payload = ContentPayload.from_dict(
            {
                "version": "2024-01-15T10:30:00Z",
                "lastUpdated": 1705314600000,
                "perks": {"combat": [], "magic": [], "skill": []},
            }
        )

        assert payload.body == {"perks": {"combat": [], "magic": [], "skill": []}}

    def test_integral_float_timestamp_accepted(self):
        payload = ContentPayload.from_dict({"version": "v1", "lastUpdated": 1000.0})
        assert payload.last_updated == 1000
        assert isinstance(payload.last_updated, int)

    @pytest.mark.parametrize(
        "data",
        [
            ["not", "an", "object"],
            "string",
            {"lastUpdated": 1000, "body": {}},
            {"version": "", "lastUpdated": 1000},
            {"version": 3, "lastUpdated": 1000},
            {"version": "v1"},
            {"version": "v1", "lastUpdated": "1000"},
            {"version": "v1", "lastUpdated": True},
            {"version": "v1", "lastUpdated": 10.5},
        ],
    )
    def test_malformed_payloads_raise_parse_error(self, data):
        """Test that anything not shaped like a payload is rejected."""
        with pytest.raises(ParseError):
            ContentPayload.from_dict(data)


class TestToDict:
    """Test serialization."""

    def test_to_dict_uses_envelope(self):
        payload = ContentPayload("v1", 1000, {"perks": [1, 2]})

        assert payload.to_dict() == {
            "version": "v1",
            "lastUpdated": 1000,
            "body": {"perks": [1, 2]},
        }

    def test_flat_payload_reads_back_as_envelope(self):
        """Test that a flat payload is stored in the envelope form."""
        flat = ContentPayload.from_dict({"version": "v1", "lastUpdated": 5, "spells": []})

        assert ContentPayload.from_dict(flat.to_dict()) == flat

"""Tests for utility functions."""

import pytest

from refcache.utils import (
    format_cache_age,
    format_size,
    is_cloud_path,
    join_location,
    natural_sort_key,
    validate_resource_id,
)


class TestIsCloudPath:
    @pytest.mark.parametrize(
        "path",
        ["https://raw.githubusercontent.com/org/repo", "gs://bucket/x", "s3://b/k", "file:///tmp/x"],
    )
    def test_cloud_paths(self, path):
        assert is_cloud_path(path) is True

    @pytest.mark.parametrize("path", ["/opt/app/data", "relative/dir", "C:/content"])
    def test_local_paths(self, path):
        assert is_cloud_path(path) is False


class TestJoinLocation:
    def test_remote_join_normalizes_slashes(self):
        assert (
            join_location("https://example.test/content/", "/perks.json")
            == "https://example.test/content/perks.json"
        )

    def test_local_join(self, tmp_path):
        assert join_location(tmp_path, "rules/core.md") == str(tmp_path / "rules" / "core.md")


class TestFormatCacheAge:
    """Test relative age display."""

    @pytest.mark.parametrize(
        "age_ms,expected",
        [
            (0, "Just now"),
            (59_000, "Just now"),
            (5 * 60_000, "5m ago"),
            (3 * 3_600_000, "3h ago"),
            (2 * 86_400_000, "2d ago"),
        ],
    )
    def test_buckets(self, age_ms, expected):
        now = 1_700_000_000_000
        assert format_cache_age(now - age_ms, now) == expected

    def test_future_timestamp_is_just_now(self):
        assert format_cache_age(2_000, 1_000) == "Just now"


class TestFormatSize:
    def test_bytes(self):
        assert format_size(512) == "512 B"

    def test_kilobytes(self):
        assert format_size(2048) == "2.0 KB"

    def test_megabytes(self):
        assert format_size(5 * 1024 * 1024) == "5.0 MB"


class TestValidateResourceId:
    """Test resource id validation."""

    @pytest.mark.parametrize("resource_id", ["perks", "rules/1. Introduction.md", "a/b/c.json"])
    def test_valid(self, resource_id):
        assert validate_resource_id(resource_id) == resource_id

    @pytest.mark.parametrize(
        "resource_id",
        ["", "   ", "/etc/passwd", "..", "../secrets", "rules/../../x", "rules//core", "a\\b", "rules/"],
    )
    def test_invalid(self, resource_id):
        with pytest.raises(ValueError):
            validate_resource_id(resource_id)


class TestNaturalSortKey:
    def test_numbers_sort_by_value(self):
        names = ["10. Magic.md", "2. Combat.md", "3.2 Armor.md", "3.10 Shields.md", "1. Intro.md"]

        assert sorted(names, key=natural_sort_key) == [
            "1. Intro.md",
            "2. Combat.md",
            "3.2 Armor.md",
            "3.10 Shields.md",
            "10. Magic.md",
        ]

    def test_case_insensitive(self):
        assert sorted(["beta", "Alpha"], key=natural_sort_key) == ["Alpha", "beta"]

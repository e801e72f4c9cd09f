"""
Tests for blob name utilities.
"""

import pytest

from blobkit.storage.paths import MAX_NAME_LENGTH, BlobNames


class TestBlobNameValidation:
    """Tests for blob name rules."""

    def test_valid_name(self):
        """Test that ordinary names pass through unchanged."""
        assert BlobNames.validate("logs/2024/app.log") == "logs/2024/app.log"

    def test_empty_name(self):
        """Test that empty names are rejected."""
        with pytest.raises(ValueError):
            BlobNames.validate("")

    def test_name_too_long(self):
        """Test the maximum name length."""
        BlobNames.validate("a" * MAX_NAME_LENGTH)
        with pytest.raises(ValueError):
            BlobNames.validate("a" * (MAX_NAME_LENGTH + 1))

    def test_too_many_segments(self):
        """Test the maximum nesting depth."""
        BlobNames.validate("/".join(["a"] * 254))
        with pytest.raises(ValueError):
            BlobNames.validate("/".join(["a"] * 255))


class TestDirectoryPrefix:
    """Tests for directory prefixes."""

    def test_as_directory(self):
        """Test trailing delimiter handling."""
        assert BlobNames.as_directory("logs") == "logs/"
        assert BlobNames.as_directory("logs/") == "logs/"


class TestCollapse:
    """Tests for hierarchical grouping."""

    def test_leaf_at_root(self):
        """Test that a root-level name is a leaf."""
        assert BlobNames.collapse("myblob") is None

    def test_nested_at_root(self):
        """Test that nested names collapse to their first directory."""
        assert BlobNames.collapse("a/b/c") == "a/"

    def test_below_prefix(self):
        """Test collapsing relative to a directory prefix."""
        assert BlobNames.collapse("a/b/c", "a/") == "a/b/"
        assert BlobNames.collapse("a/b", "a/") is None

    def test_partial_segment_prefix(self):
        """Test a prefix that ends mid-segment."""
        assert BlobNames.collapse("abc/d", "ab") == "abc/"

    def test_name_outside_prefix(self):
        """Test handling of names that do not match the prefix."""
        with pytest.raises(ValueError):
            BlobNames.collapse("b/c", "a/")

    def test_leading_delimiter(self):
        """Test that a leading '/' collapses to the root directory marker."""
        assert BlobNames.collapse("/x") == "/"
        assert BlobNames.collapse("/x", "/") is None

"""Unit tests for path addressing and issue diffing.

Tests cover:
- Canonical path identity (stable, collision-free between key kinds)
- Lenient structural reads
- Structural writes (whole-tree replace, in-place mutation, intermediates)
- Write failures through incompatible intermediate nodes
- Diffing issues into the field tree
"""

import pytest

from formsync.errors import Issue, PathWriteError
from formsync.form import Form
from formsync.paths import diff_issues, get_path_id, group_issues, read_at, write_at


class TestGetPathId:
    """Test canonical path identities."""

    def test_root_path_is_empty_string(self):
        """Should map the root path to the empty string."""
        assert get_path_id(()) == ""

    def test_same_path_is_stable(self):
        """Should produce the same identity for equal paths."""
        assert get_path_id(("users", 0, "name")) == get_path_id(["users", 0, "name"])

    def test_index_and_string_key_do_not_collide(self):
        """Should keep integer indices and numeric string keys apart."""
        assert get_path_id((0,)) != get_path_id(("0",))
        assert get_path_id(("a", 1)) != get_path_id(("a", "1"))

    def test_keys_containing_separators_do_not_collide(self):
        """Should not confuse a dotted key with two nested keys."""
        assert get_path_id(("a.b",)) != get_path_id(("a", "b"))
        assert get_path_id(('a"]',)) != get_path_id(("a", 0))

    def test_rejects_bool_keys(self):
        """Should reject keys that are neither str nor int."""
        with pytest.raises(TypeError):
            get_path_id((True,))
        with pytest.raises(TypeError):
            get_path_id((1.5,))


class TestReadAt:
    """Test structural reads."""

    def test_read_nested_value(self):
        """Should follow string and integer keys."""
        tree = {"users": [{"name": "Alice"}, {"name": "Bob"}]}
        assert read_at(tree, ("users", 1, "name")) == "Bob"

    def test_read_root(self):
        """Should return the tree itself for the root path."""
        tree = {"a": 1}
        assert read_at(tree, ()) is tree

    def test_missing_key_reads_none(self):
        """Should return None when a step is missing."""
        assert read_at({"a": {}}, ("a", "b")) is None
        assert read_at({"a": []}, ("a", 3)) is None

    def test_wrong_shape_reads_none(self):
        """Should return None instead of failing on a shape mismatch."""
        assert read_at({"a": "text"}, ("a", "b")) is None
        assert read_at({"a": {"0": 1}}, ("a", 0)) is None


class TestWriteAt:
    """Test structural writes."""

    def test_empty_path_replaces_tree(self):
        """Should return the new value as the new root."""
        assert write_at({"a": 1}, (), [1, 2]) == [1, 2]

    def test_write_mutates_in_place(self):
        """Should mutate the existing structure and return the same root."""
        tree = {"address": {"city": ""}}
        address = tree["address"]
        result = write_at(tree, ("address", "city"), "Paris")

        assert result is tree
        assert tree["address"] is address
        assert address["city"] == "Paris"

    def test_creates_intermediate_containers(self):
        """Should create a list for an integer key and a dict for a string key."""
        tree = {}
        write_at(tree, ("users", 0, "name"), "Alice")
        assert tree == {"users": [{"name": "Alice"}]}

    def test_creates_root_when_absent(self):
        """Should create the root container when the tree is None."""
        assert write_at(None, ("a",), 1) == {"a": 1}
        assert write_at(None, (0,), "x") == ["x"]

    def test_pads_lists(self):
        """Should pad a list with None up to the written index."""
        tree = {"items": ["a"]}
        write_at(tree, ("items", 3), "d")
        assert tree["items"] == ["a", None, None, "d"]

    def test_index_into_mapping_fails(self):
        """Should raise PathWriteError when indexing a non-list."""
        with pytest.raises(PathWriteError) as exc_info:
            write_at({"a": {}}, ("a", 0), 1)
        assert exc_info.value.position == 1
        assert exc_info.value.path == ("a", 0)

    def test_key_into_scalar_fails(self):
        """Should raise PathWriteError when writing a key into a scalar."""
        with pytest.raises(PathWriteError):
            write_at({"a": "text"}, ("a", "b"), 1)

    def test_key_into_list_fails(self):
        """Should raise PathWriteError when writing a string key into a list."""
        with pytest.raises(PathWriteError):
            write_at({"a": []}, ("a", "b"), 1)

    def test_negative_index_fails(self):
        """Should refuse negative list indices."""
        with pytest.raises(PathWriteError):
            write_at({"a": [1, 2]}, ("a", -1), 3)

    def test_path_write_error_is_type_error(self):
        """Should be catchable as a TypeError (programmer error)."""
        with pytest.raises(TypeError):
            write_at([], ("a",), 1)


PERSON_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "email": {"type": "string"},
        "address": {
            "type": "object",
            "properties": {"city": {"type": "string"}},
        },
    },
}


class TestGroupIssues:
    """Test grouping of issues by path identity."""

    def test_groups_keep_order(self):
        """Should keep the relative order of messages within a path."""
        issues = [
            Issue(path=("name",), message="first"),
            Issue(path=("email",), message="other"),
            Issue(path=("name",), message="second"),
        ]
        grouped = group_issues(issues)
        assert [i.message for i in grouped[get_path_id(("name",))]] == ["first", "second"]
        assert len(grouped) == 2


class TestDiffIssues:
    """Test diffing issues into the field tree."""

    def test_assigns_messages_by_path(self):
        """Should give each field exactly the messages of its path."""
        form = Form(PERSON_SCHEMA)
        changed = diff_issues(
            [
                Issue(path=("name",), message="Name is required"),
                Issue(path=("address", "city"), message="City is too short"),
                Issue(path=("address", "city"), message="City is unknown"),
            ],
            form.root,
        )

        fields = form.root.fields
        assert fields["name"].error_messages == ("Name is required",)
        assert fields["address"].fields["city"].error_messages == ("City is too short", "City is unknown")
        assert fields["email"].error_messages == ()
        assert changed == [fields["name"], fields["address"].fields["city"]]

    def test_unchanged_fields_keep_identity(self):
        """Should not replace a field's messages when they are equal."""
        form = Form(PERSON_SCHEMA)
        diff_issues([Issue(path=("name",), message="bad")], form.root)
        before = form.root.fields["name"].error_messages

        changed = diff_issues([Issue(path=("name",), message="bad")], form.root)

        assert changed == []
        assert form.root.fields["name"].error_messages is before

    def test_stale_messages_are_cleared(self):
        """Should clear messages for paths absent from the new issues."""
        form = Form(PERSON_SCHEMA)
        diff_issues([Issue(path=("name",), message="bad")], form.root)

        changed = diff_issues([], form.root)

        assert form.root.fields["name"].error_messages == ()
        assert changed == [form.root.fields["name"]]

    def test_issues_are_stored_on_fields(self):
        """Should expose the raw issues alongside the messages."""
        form = Form(PERSON_SCHEMA)
        issue = Issue(path=("email",), message="bad email")
        diff_issues([issue], form.root)
        assert form.root.fields["email"].issues == (issue,)

    def test_issue_without_field_is_ignored(self):
        """Should ignore issues for paths no field is bound to."""
        form = Form(PERSON_SCHEMA)
        changed = diff_issues([Issue(path=("unknown",), message="x")], form.root)
        assert changed == []

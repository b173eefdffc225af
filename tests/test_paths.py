"""Tests for path whitelisting and the access audit."""

import os

import pytest

from proofline.errors import PathDenied
from proofline.paths import assert_path_allowed, create_audit, normalize_path, path_contains


class TestPathContains:

    def test_root_contains_itself(self, tmp_path):
        assert path_contains(str(tmp_path), str(tmp_path))

    def test_descendant(self, tmp_path):
        assert path_contains(str(tmp_path), str(tmp_path / "src" / "a.py"))

    def test_sibling_with_shared_prefix_is_not_contained(self, tmp_path):
        assert not path_contains(str(tmp_path / "proj"), str(tmp_path / "proj2" / "a.py"))

    def test_trailing_separator_on_root(self, tmp_path):
        assert path_contains(str(tmp_path) + os.sep, str(tmp_path / "x"))

    def test_dotdot_is_resolved(self, tmp_path):
        sneaky = str(tmp_path / "proj" / ".." / "other")
        assert not path_contains(str(tmp_path / "proj"), sneaky)


class TestAssertPathAllowed:

    def test_allowed_path_recorded(self, tmp_path):
        audit = create_audit("codex")
        target = tmp_path / "proj" / "file.txt"
        resolved = assert_path_allowed(str(target), [str(tmp_path / "proj")], audit, "read")

        assert resolved == normalize_path(str(target))
        assert len(audit.records) == 1
        record = audit.records[0]
        assert record.allowed is True
        assert record.action == "read"
        assert record.reason == "within client whitelist"

    def test_denied_path_raises_and_records(self, tmp_path):
        audit = create_audit("codex")
        target = str(tmp_path / "proj2" / "secret.txt")

        with pytest.raises(PathDenied, match="Path blocked by whitelist") as exc:
            assert_path_allowed(target, [str(tmp_path / "proj")], audit, "scan")

        assert exc.value.path == normalize_path(target)
        assert len(audit.records) == 1
        assert audit.records[0].allowed is False
        assert audit.records[0].reason == "outside client whitelist"

    def test_no_roots_denies_everything(self, tmp_path):
        audit = create_audit("codex")
        with pytest.raises(PathDenied):
            assert_path_allowed(str(tmp_path), [], audit, "glob")
        assert audit.records[0].allowed is False

    def test_any_root_may_allow(self, tmp_path):
        audit = create_audit("codex")
        roots = [str(tmp_path / "a"), str(tmp_path / "b")]
        assert_path_allowed(str(tmp_path / "b" / "x"), roots, audit, "sqlite")
        assert audit.records[0].allowed is True

    def test_unknown_action_rejected(self, tmp_path):
        audit = create_audit("codex")
        with pytest.raises(ValueError, match="Unknown path action"):
            assert_path_allowed(str(tmp_path), [str(tmp_path)], audit, "delete")
        assert audit.records == []

    def test_audit_is_append_only_across_calls(self, tmp_path):
        audit = create_audit("codex")
        root = str(tmp_path)
        assert_path_allowed(str(tmp_path / "a"), [root], audit, "read")
        with pytest.raises(PathDenied):
            assert_path_allowed("/definitely/elsewhere", [root], audit, "read")
        assert [r.allowed for r in audit.records] == [True, False]
        assert audit.client == "codex"

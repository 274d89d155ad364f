"""Tests for package root discovery."""

from cesval.parser.discovery import find_package_root_for_path, find_package_roots


class TestFindPackageRootForPath:
    """Test upward root discovery."""

    def test_from_nested_file(self, make_package, valid_files):
        """Test walking up from a file inside the package."""
        root = make_package(valid_files)

        found = find_package_root_for_path(root / "agents" / "voice_banking_agent" / "instruction.txt")

        assert found == root

    def test_from_root_itself(self, make_package, valid_files):
        """Test a root directory resolves to itself."""
        root = make_package(valid_files)
        assert find_package_root_for_path(root) == root

    def test_app_json_root(self, tmp_path):
        """Test app.json also marks a root."""
        (tmp_path / "pkg" / "agents").mkdir(parents=True)
        (tmp_path / "pkg" / "app.json").write_text("{}", encoding="utf-8")

        assert find_package_root_for_path(tmp_path / "pkg" / "agents") == (tmp_path / "pkg").resolve()

    def test_no_root(self, tmp_path):
        """Test None when no ancestor holds a manifest."""
        (tmp_path / "plain").mkdir()
        result = find_package_root_for_path(tmp_path / "plain")

        assert result is None or not str(result).startswith(str(tmp_path.resolve()))


class TestFindPackageRoots:
    """Test recursive root discovery."""

    def test_multiple_roots_sorted(self, tmp_path):
        """Test every root is found, sorted, skipping excluded folders."""
        for relative in ["b/app.yaml", "a/app.json", "a/nested/app.yaml", "node_modules/x/app.yaml",
                         ".git/y/app.yaml", "dist/app.yaml"]:
            file_path = tmp_path / relative
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text("{}", encoding="utf-8")

        base = tmp_path.resolve()
        assert find_package_roots(tmp_path) == [base / "a", base / "a" / "nested", base / "b"]

    def test_empty_directory(self, tmp_path):
        """Test no roots under an empty folder."""
        assert find_package_roots(tmp_path) == []

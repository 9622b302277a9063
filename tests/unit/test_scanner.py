"""Unit tests for the codebase scanner."""

import asyncio
from pathlib import Path

import pytest

from taskpiea.models import Issue, Setting
from taskpiea.scanner import (
    SELF_EXCLUDE,
    LocalFileProvider,
    Scanner,
    collect_scan_settings,
    glob_matches,
    keyword_pattern,
    matches_any,
    normalize_exclude,
    scan_lines,
)


class FakeProvider:
    """In-memory FileProvider; a value of None marks an unreadable file."""

    def __init__(self, files):
        self.files = files
        self.find_calls = []

    def find_files(self, includes, excludes):
        self.find_calls.append((list(includes), list(excludes)))
        return [Path(name) for name in self.files]

    def read_text(self, path):
        return self.files[path.as_posix()]

    def relative_path(self, path):
        return path.as_posix()


def keyword(value):
    return Setting("Scanner.Keyword", value)


def exclude(value):
    return Setting("Scanner.Exclude", value)


class TestGlobs:
    """Test cases for exclude normalization and glob matching."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("*.md", "**/*.md/**"),
            ("node_modules", "**/node_modules/**"),
            ("node_modules/", "**/node_modules/**"),
            (" build ", "**/build/**"),
            ("**/dist/**", "**/dist/**"),
        ],
    )
    def test_normalize_exclude(self, value, expected):
        assert normalize_exclude(value) == expected

    @pytest.mark.parametrize("path", ["README.md", "docs/guide.md", "a.md/inner.txt"])
    def test_wrapped_glob_matches(self, path):
        assert glob_matches(path, "**/*.md/**")

    @pytest.mark.parametrize("path", ["docs/guide.mdx", "md", "docs/md/readme.txt"])
    def test_wrapped_glob_rejects(self, path):
        assert not glob_matches(path, "**/*.md/**")

    def test_include_all(self):
        assert glob_matches("main.py", "**/*")
        assert glob_matches("a/b/c.py", "**/*")

    def test_directory_name_at_any_depth(self):
        assert glob_matches("node_modules", "**/node_modules/**")
        assert glob_matches("web/node_modules/pkg/index.js", "**/node_modules/**")
        assert not glob_matches("web/my_node_modules/x.js", "**/node_modules/**")

    def test_anchored_pattern(self):
        assert glob_matches("build/out.js", "build/**")
        assert not glob_matches("src/build/out.js", "build/**")

    def test_character_class_and_question_mark(self):
        assert glob_matches("logs/a1.log", "**/a[0-9].log")
        assert not glob_matches("logs/ab.log", "**/a[0-9].log")
        assert glob_matches("x/b.js", "**/?.js")
        assert not glob_matches("x/ab.js", "**/?.js")

    def test_matches_any(self):
        assert matches_any("tasks.taskp", ["**/*.md/**", SELF_EXCLUDE])
        assert not matches_any("main.py", ["**/*.md/**", SELF_EXCLUDE])


class TestScanSettings:
    """Test cases for collecting keywords and excludes."""

    def test_keywords_accumulate_with_duplicates(self):
        keywords, _ = collect_scan_settings(
            [keyword("TODO"), keyword(" FIXME "), keyword("TODO"), Setting("Other", "x")]
        )

        assert keywords == ["TODO", "FIXME", "TODO"]

    def test_empty_values_ignored(self):
        keywords, excludes = collect_scan_settings([keyword(""), exclude("  ")])

        assert keywords == []
        assert excludes == [SELF_EXCLUDE]

    def test_self_exclude_is_always_added(self):
        _, excludes = collect_scan_settings([exclude("*.md")])

        assert excludes == ["**/*.md/**", SELF_EXCLUDE]

    def test_self_exclude_not_duplicated(self):
        _, excludes = collect_scan_settings([exclude("*.taskp")])

        assert excludes == [SELF_EXCLUDE]


class TestKeywordMatching:
    """Test cases for whole-word, case-insensitive keyword matching."""

    @pytest.mark.parametrize(
        "line",
        ["# TODO: fix", "# todo: fix", "// ToDo", "x = 1  # (TODO)", "TODO"],
    )
    def test_matches(self, line):
        assert keyword_pattern("TODO").search(line)

    @pytest.mark.parametrize("line", ["TODOLIST", "MYTODO", "todo_items", "to do"])
    def test_rejects(self, line):
        assert not keyword_pattern("TODO").search(line)

    def test_keyword_with_symbols_is_literal(self):
        assert keyword_pattern("@fix").search("see @fix here")
        assert not keyword_pattern("a.b").search("axb")

    def test_one_issue_per_line(self):
        matchers = [(k, keyword_pattern(k)) for k in ["FIXME", "TODO"]]
        text = "ok\n  # TODO FIXME both  \nnothing\n# todo later"

        assert scan_lines(text, matchers, "src/a.py") == [
            Issue(keyword="FIXME", file="src/a.py", line_number=1, content="# TODO FIXME both"),
            Issue(keyword="TODO", file="src/a.py", line_number=3, content="# todo later"),
        ]


class TestScanner:
    """Test cases for Scanner.scan against an in-memory provider."""

    def test_no_issues_section_skips_scan(self):
        provider = FakeProvider({"a.py": "# TODO"})
        issues = asyncio.run(Scanner(provider).scan([keyword("TODO")], -1))

        assert issues == []
        assert provider.find_calls == []

    def test_no_keywords_skips_scan(self):
        provider = FakeProvider({"a.py": "# TODO"})
        issues = asyncio.run(Scanner(provider).scan([exclude("*.md")], 4))

        assert issues == []
        assert provider.find_calls == []

    def test_globs_passed_to_provider(self):
        provider = FakeProvider({})
        asyncio.run(Scanner(provider).scan([keyword("TODO"), exclude("vendor")], 0))

        assert provider.find_calls == [(["**/*"], ["**/vendor/**", SELF_EXCLUDE])]

    def test_issues_in_file_order_and_line_order(self):
        provider = FakeProvider(
            {
                "b.py": "x\n# BUG one\ny\n# BUG two",
                "image.png": None,
                "a.py": "# TODO first",
            }
        )
        issues = asyncio.run(Scanner(provider).scan([keyword("TODO"), keyword("BUG")], 2))

        assert [(i.file, i.line_number, i.keyword) for i in issues] == [
            ("b.py", 1, "BUG"),
            ("b.py", 3, "BUG"),
            ("a.py", 0, "TODO"),
        ]


class TestLocalFileProvider:
    """Test cases for scanning a directory on disk."""

    @pytest.fixture
    def project(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "app.py").write_text("def f():\n    pass  # TODO: handle errors\n", encoding="utf-8")
        (tmp_path / "src" / "util.py").write_text("# nothing to see\n", encoding="utf-8")
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "notes.md").write_text("TODO: write docs\n", encoding="utf-8")
        (tmp_path / "tasks.taskp").write_text("[ISSUES]\n- TODO: x [src/app.py::1]\n", encoding="utf-8")
        (tmp_path / "blob.bin").write_bytes(b"TODO\x00\x01\x02")
        (tmp_path / "latin1.txt").write_bytes("TODO caf\xe9".encode("latin-1"))
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "COMMIT_EDITMSG").write_text("TODO\n", encoding="utf-8")
        (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
        (tmp_path / "node_modules" / "pkg" / "index.js").write_text("// TODO\n", encoding="utf-8")
        return tmp_path

    def test_find_files_honours_excludes(self, project):
        provider = LocalFileProvider(project)
        files = provider.find_files(["**/*"], ["**/node_modules/**", SELF_EXCLUDE])

        relative = [provider.relative_path(path) for path in files]
        assert "src/app.py" in relative
        assert "docs/notes.md" in relative
        assert "tasks.taskp" not in relative
        assert not any(path.startswith(("node_modules/", ".git/")) for path in relative)

    def test_read_text_rejects_binary(self, project):
        provider = LocalFileProvider(project)

        assert provider.read_text(project / "blob.bin") is None
        assert provider.read_text(project / "latin1.txt") is None
        assert provider.read_text(project / "missing.py") is None
        assert provider.read_text(project / "src" / "util.py") == "# nothing to see\n"

    def test_scan_project(self, project):
        settings = [keyword("TODO"), exclude("*.md"), exclude("node_modules")]
        issues = asyncio.run(Scanner(LocalFileProvider(project)).scan(settings, 0))

        assert issues == [
            Issue(keyword="TODO", file="src/app.py", line_number=1, content="pass  # TODO: handle errors"),
        ]

    def test_taskp_never_scanned(self, project):
        issues = asyncio.run(Scanner(LocalFileProvider(project)).scan([keyword("TODO")], 0))

        assert all(not issue.file.endswith(".taskp") for issue in issues)
        assert {issue.file for issue in issues} == {"src/app.py", "docs/notes.md", "node_modules/pkg/index.js"}

"""Tests for exclusion glob matching."""

import pytest

from dirmirror.exclude import ExcludeSpec, expand_braces


class TestExcludeSpec:
    """Test matching destination paths against exclusion globs."""

    def test_bare_name_is_anchored_to_root(self):
        spec = ExcludeSpec(["node_modules"])

        assert spec.matches("node_modules", is_dir=True)
        assert spec.matches("node_modules/pkg/index.js")
        assert not spec.matches("packages/app/node_modules", is_dir=True)
        assert not spec.matches("node_modules2", is_dir=True)

    def test_globstar_reaches_any_depth(self):
        spec = ExcludeSpec(["**/node_modules"])

        assert spec.matches("node_modules", is_dir=True)
        assert spec.matches("packages/app/node_modules", is_dir=True)
        assert spec.matches("packages/app/node_modules/dep.js")

    def test_path_with_slash_is_anchored(self):
        spec = ExcludeSpec(["node_modules2/file.txt"])

        assert spec.matches("node_modules2/file.txt")
        assert not spec.matches("node_modules2/file2.txt")
        assert not spec.matches("nested/node_modules2/file.txt")

    def test_star_stays_within_one_segment(self):
        spec = ExcludeSpec(["*.txt"])

        assert spec.matches("top.txt")
        assert not spec.matches("sub/old.txt")

    def test_wildcards(self):
        spec = ExcludeSpec(["*.log", "build/**/*.o", "data?.csv", "[ab].md"])

        assert spec.matches("debug.log")
        assert not spec.matches("logs/today.log")
        assert spec.matches("build/x/y/main.o")
        assert spec.matches("build/main.o")
        assert spec.matches("data1.csv")
        assert not spec.matches("data10.csv")
        assert spec.matches("a.md")
        assert not spec.matches("c.md")
        assert not spec.matches("src/main.c")

    def test_braces(self):
        spec = ExcludeSpec(["{a,b}.txt", "config/{dev,prod}/*.json"])

        assert spec.matches("a.txt")
        assert spec.matches("b.txt")
        assert not spec.matches("c.txt")
        assert spec.matches("config/prod/app.json")
        assert not spec.matches("config/test/app.json")

    def test_directory_only_pattern(self):
        spec = ExcludeSpec(["cache/"])

        assert spec.matches("cache", is_dir=True)
        assert not spec.matches("cache", is_dir=False)
        assert not spec.matches("sub/cache", is_dir=True)

    def test_empty(self):
        spec = ExcludeSpec(["", "  "])

        assert not spec
        assert spec.patterns == []
        assert not spec.matches("anything")


class TestExpandBraces:
    @pytest.mark.parametrize("pattern, expected", [
        ("plain.txt", ["plain.txt"]),
        ("{a,b}.txt", ["a.txt", "b.txt"]),
        ("{a,b}/{c,d}", ["a/c", "a/d", "b/c", "b/d"]),
        ("x{a,{b,c}}", ["xa", "xb", "xc"]),
        ("{single}.txt", ["{single}.txt"]),
        ("{unclosed,x", ["{unclosed,x"]),
        ("{,.min}.js", [".js", ".min.js"]),
    ])
    def test_expand(self, pattern, expected):
        assert expand_braces(pattern) == expected

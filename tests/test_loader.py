import os
import shutil
import tempfile

import pytest

from go2proto.buildtags import BuildContext
from go2proto.loader import LoadError, find_module, load_packages
from go2proto.parser.go_ast import GoNamedType, GoStructType
from go2proto.typeinfo import bare_name, type_string, underlying


MODELS_GO = """\
package models

import "time"

type Status string

type Alias = Status

type Tags []string

type User struct {
	Name    string
	Created *time.Time
	Friends []*User
	Labels  map[string]Status
}

type Loop1 Loop2
type Loop2 Loop1
"""

SUB_GO = """\
package sub

import "github.com/acme/shop/models"

type Wrapper struct {
	User models.User
}
"""


def _write(root: str, rel_path: str, content: str) -> None:
    path = os.path.join(root, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(content)


class TestModuleLayout:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()
        _write(self.work_dir, "go.mod", "module github.com/acme/shop\n\ngo 1.21\n")
        _write(self.work_dir, "models/models.go", MODELS_GO)
        _write(self.work_dir, "models/sub/sub.go", SUB_GO)
        _write(self.work_dir, "models/models_test.go", "this is not Go")
        _write(self.work_dir, "models/testdata/bad.go", "neither is this")

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def test_find_module(self):
        module = find_module(os.path.join(self.work_dir, "models"))
        assert module.path == "github.com/acme/shop"
        assert os.path.samefile(module.root, self.work_dir)

    def test_relative_pattern(self):
        packages = load_packages(self.work_dir, ["./models"])
        assert len(packages) == 1
        pkg = packages[0]
        assert pkg.path == "github.com/acme/shop/models"
        assert pkg.name == "models"
        assert sorted(pkg.types) == ["Alias", "Loop1", "Loop2", "Status", "Tags", "User"]
        assert len(pkg.files) == 1  # _test.go files are ignored

    def test_import_path_pattern(self):
        packages = load_packages(self.work_dir, ["github.com/acme/shop/models"])
        assert [p.path for p in packages] == ["github.com/acme/shop/models"]

    def test_recursive_pattern(self):
        packages = load_packages(self.work_dir, ["./..."])
        assert [p.path for p in packages] == [
            "github.com/acme/shop/models",
            "github.com/acme/shop/models/sub",
        ]

    def test_same_directory_loaded_once(self):
        packages = load_packages(self.work_dir, ["./models/...", "./models"])
        assert [p.path for p in packages] == [
            "github.com/acme/shop/models",
            "github.com/acme/shop/models/sub",
        ]

    def test_names_are_linked_to_declaring_package(self):
        packages = load_packages(self.work_dir, ["./..."])
        models, sub = packages
        fields = models.types["User"].type_expr.fields
        assert type_string(fields[0].type_expr) == "string"
        assert type_string(fields[1].type_expr) == "*time.Time"
        assert type_string(fields[2].type_expr) == "[]*github.com/acme/shop/models.User"
        assert type_string(fields[3].type_expr) == "map[string]github.com/acme/shop/models.Status"

        wrapped = sub.types["Wrapper"].type_expr.fields[0].type_expr
        assert wrapped.package_path == "github.com/acme/shop/models"
        assert isinstance(underlying(wrapped, sub.universe), GoStructType)

    def test_underlying_types(self):
        packages = load_packages(self.work_dir, ["./models"])
        universe = packages[0].universe
        path = "github.com/acme/shop/models"

        assert underlying(GoNamedType("Status", package_path=path), universe) == GoNamedType("string")
        assert underlying(GoNamedType("Alias", package_path=path), universe) == GoNamedType("string")
        assert underlying(GoNamedType("Time", qualifier="time", package_path="time"), universe) == GoStructType()
        assert underlying(GoNamedType("Loop1", package_path=path), universe) is None
        assert underlying(GoNamedType("Missing", package_path=path), universe) is None
        assert underlying(GoNamedType("UUID", package_path="github.com/google/uuid"), universe) is None


class TestWithoutModule:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()
        _write(self.work_dir, "example/in/model.go", "package in\n\ntype User struct{}\n")

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def test_import_path_is_relative_directory(self):
        packages = load_packages(self.work_dir, ["./example/in"])
        assert packages[0].path == "example/in"

    def test_absolute_directory(self):
        directory = os.path.join(self.work_dir, "example", "in")
        packages = load_packages(self.work_dir, [directory])
        assert packages[0].name == "in"


class TestLoadErrors:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def test_all_failures_are_reported_together(self):
        _write(self.work_dir, "broken/a.go", "package broken\n\ntype X struct {\n")
        _write(self.work_dir, "good/a.go", "package good\n")
        with pytest.raises(LoadError) as exc_info:
            load_packages(self.work_dir, ["./missing", "./good", "./broken"])
        message = str(exc_info.value)
        assert "error fetching package ./missing" in message
        assert "error fetching package broken" in message
        assert "a.go" in message
        assert "good" not in message

    def test_empty_directory(self):
        os.makedirs(os.path.join(self.work_dir, "empty"))
        with pytest.raises(LoadError, match="no Go files"):
            load_packages(self.work_dir, ["./empty"])

    def test_mixed_package_clauses(self):
        _write(self.work_dir, "mixed/a.go", "package a\n")
        _write(self.work_dir, "mixed/b.go", "package b\n")
        with pytest.raises(LoadError, match="found packages a and b"):
            load_packages(self.work_dir, ["./mixed"])

    def test_redeclared_type(self):
        _write(self.work_dir, "dup/a.go", "package dup\n\ntype User struct{}\n")
        _write(self.work_dir, "dup/b.go", "package dup\n\ntype User int\n")
        with pytest.raises(LoadError, match="User redeclared"):
            load_packages(self.work_dir, ["./dup"])

    def test_unknown_import_path(self):
        with pytest.raises(LoadError, match="cannot find package"):
            load_packages(self.work_dir, ["github.com/nobody/nothing"])


class TestBareName:
    def test_strips_path_and_markers(self):
        assert bare_name("*github.com/acme/shop/models.User") == "User"
        assert bare_name("[]int") == "int"
        assert bare_name("[]*example/in.EventField") == "EventField"
        assert bare_name("time.Time") == "Time"
        assert bare_name("string") == "string"


class TestBuildConstraints:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()
        _write(self.work_dir, "shop/model.go", "package shop\n\n// @go2proto\ntype Order struct {\n\tID string\n}\n")

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def test_ignored_generator_file(self):
        _write(self.work_dir, "shop/gen.go", "//go:build ignore\n\npackage main\n\nfunc main() {}\n")
        packages = load_packages(self.work_dir, ["./shop"])
        assert packages[0].name == "shop"
        assert [os.path.basename(f.path) for f in packages[0].files] == ["model.go"]

    def test_legacy_plus_build_line(self):
        _write(self.work_dir, "shop/tools.go", "// +build tools\n\npackage tools\n")
        packages = load_packages(self.work_dir, ["./shop"])
        assert packages[0].name == "shop"

    def test_os_and_arch_file_suffixes(self):
        _write(self.work_dir, "shop/path_linux.go", "package shop\n\ntype Path string\n")
        _write(self.work_dir, "shop/path_windows.go", "package shop\n\ntype Path string\n")
        _write(self.work_dir, "shop/word_arm64.go", "package shop\n\ntype Word uint64\n")
        _write(self.work_dir, "shop/word_amd64.go", "package shop\n\ntype Word uint64\n")
        _write(self.work_dir, "shop/sys_darwin_amd64.go", "package shop\n\ntype Sys int\n")
        packages = load_packages(self.work_dir, ["./shop"])
        names = sorted(os.path.basename(f.path) for f in packages[0].files)
        assert names == ["model.go", "path_linux.go", "word_amd64.go"]
        assert sorted(packages[0].types) == ["Order", "Path", "Word"]

    def test_other_build_context(self):
        _write(self.work_dir, "shop/path_linux.go", "package shop\n\ntype Path string\n")
        _write(self.work_dir, "shop/path_windows.go", "package shop\n\ntype Path string\n")
        context = BuildContext(goos="windows", goarch="arm64")
        packages = load_packages(self.work_dir, ["./shop"], context)
        names = sorted(os.path.basename(f.path) for f in packages[0].files)
        assert names == ["model.go", "path_windows.go"]

    def test_go_build_expression(self):
        _write(self.work_dir, "shop/unix.go", "//go:build unix && !windows\n\npackage shop\n\ntype Fd int\n")
        _write(self.work_dir, "shop/plan9.go", "//go:build plan9 || (windows && arm)\n\npackage shop\n\ntype Fd int\n")
        packages = load_packages(self.work_dir, ["./shop"])
        assert "Fd" in packages[0].types

    def test_recursive_pattern_skips_fully_excluded_directories(self):
        _write(self.work_dir, "shop/internal/gen/main.go", "//go:build ignore\n\npackage main\n")
        packages = load_packages(self.work_dir, ["./..."])
        assert [p.name for p in packages] == ["shop"]

    def test_fully_excluded_directory_is_an_error(self):
        _write(self.work_dir, "gen/main.go", "//go:build ignore\n\npackage main\n")
        with pytest.raises(LoadError, match="build constraints exclude all Go files"):
            load_packages(self.work_dir, ["./gen"])

    def test_malformed_constraint(self):
        _write(self.work_dir, "shop/bad.go", "//go:build linux &&\n\npackage shop\n")
        with pytest.raises(LoadError, match="bad.go"):
            load_packages(self.work_dir, ["./shop"])

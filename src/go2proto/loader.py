"""Load Go packages from disk.

A package is one directory of ``*.go`` files (tests excluded). Loading
parses every file, links type names to the package that declares them
and reports every failure at once.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from go2proto.buildtags import (
    DEFAULT_CONTEXT,
    BuildConstraintError,
    BuildContext,
    matches_file_name,
    matches_source,
)
from go2proto.parser.go_ast import (
    GoArrayType,
    GoFile,
    GoMapType,
    GoNamedType,
    GoPointerType,
    GoSliceType,
    GoStructType,
    GoTypeExpr,
    GoTypeSpec,
)
from go2proto.parser.go_ast_parser import GoParseError
from go2proto.parser.go_parser import parse_go_source
from go2proto.typeinfo import is_predeclared

_MODULE_RE = re.compile(r"^\s*module\s+\"?([^\s\"]+)\"?", re.MULTILINE)
_SKIP_DIRS = {"vendor", "testdata"}


class LoadError(Exception):
    """Raised when one or more packages fail to load."""


@dataclass
class Package:
    path: str
    name: str
    directory: str
    files: List[GoFile] = field(default_factory=list)
    types: Dict[str, GoTypeSpec] = field(default_factory=dict)
    # Every package of one load, keyed by import path.
    universe: Dict[str, "Package"] = field(default_factory=dict, repr=False)

    def __str__(self) -> str:
        return self.path


@dataclass
class GoModule:
    path: str
    root: str


def find_module(start_dir: str) -> Optional[GoModule]:
    """Find the go.mod at or above ``start_dir``."""
    current = Path(start_dir).resolve()
    for directory in [current, *current.parents]:
        go_mod = directory / "go.mod"
        if go_mod.is_file():
            m = _MODULE_RE.search(go_mod.read_text(encoding="utf-8"))
            if m:
                return GoModule(path=m.group(1), root=str(directory))
    return None


def load_packages(
    base_dir: str,
    patterns: List[str],
    context: BuildContext = DEFAULT_CONTEXT,
) -> List[Package]:
    """Load the packages matched by ``patterns``, relative to ``base_dir``.

    Only files whose build constraints match ``context`` are loaded.

    Raises LoadError carrying one message per failing package.
    """
    module = find_module(base_dir)
    errors: List[str] = []
    packages: List[Package] = []
    loaded_dirs: set[str] = set()

    for pattern in patterns:
        directories, error = _expand_pattern(base_dir, pattern, module, context)
        if error:
            errors.append(f"error fetching package {pattern}: {error}; ")
            continue
        for directory in directories:
            if directory in loaded_dirs:
                continue
            loaded_dirs.add(directory)
            import_path = _import_path(base_dir, directory, module)
            package, pkg_errors = _load_directory(directory, import_path, context)
            if pkg_errors:
                errors.append(
                    f"error fetching package {import_path}: {'; '.join(pkg_errors)}; "
                )
            else:
                packages.append(package)

    if errors:
        raise LoadError("".join(errors).strip())

    universe = {p.path: p for p in packages}
    for package in packages:
        package.universe = universe
    return packages


def _expand_pattern(
    base_dir: str,
    pattern: str,
    module: Optional[GoModule],
    context: BuildContext,
) -> Tuple[List[str], Optional[str]]:
    """Turn a package pattern into the directories it names."""
    recursive = pattern == "..." or pattern.endswith("/...")
    target = pattern[: -len("...")].rstrip("/") if recursive else pattern
    target = target or "."

    if os.path.isabs(target) or target == "." or target.startswith(("./", "../")):
        directory = os.path.normpath(os.path.join(base_dir, target))
    elif module and (target == module.path or target.startswith(module.path + "/")):
        rel = target[len(module.path):].lstrip("/")
        directory = os.path.normpath(os.path.join(module.root, rel))
    else:
        directory = os.path.normpath(os.path.join(base_dir, target))
        if not os.path.isdir(directory):
            return [], f"cannot find package {target!r}"

    if not os.path.isdir(directory):
        return [], f"directory {directory} does not exist"

    if not recursive:
        return [directory], None

    found = []
    for root, dirs, _files in os.walk(directory):
        dirs[:] = sorted(
            d for d in dirs
            if d not in _SKIP_DIRS and not d.startswith((".", "_"))
        )
        if _has_buildable_files(root, context):
            found.append(root)
    if not found:
        return [], f"pattern {pattern} matched no packages"
    return found, None


def _import_path(base_dir: str, directory: str, module: Optional[GoModule]) -> str:
    base_dir = os.path.realpath(base_dir)
    directory = os.path.realpath(directory)
    if module is not None:
        rel = os.path.relpath(directory, module.root)
        if not rel.startswith(".."):
            if rel == ".":
                return module.path
            return module.path + "/" + Path(rel).as_posix()
    rel = os.path.relpath(directory, base_dir)
    if rel.startswith(".."):
        return Path(directory).as_posix()
    return Path(rel).as_posix()


def _go_files(directory: str, context: BuildContext) -> List[str]:
    """Go files of ``directory`` whose name fits ``context``, tests excluded."""
    return sorted(
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if name.endswith(".go")
        and not name.endswith("_test.go")
        and not name.startswith((".", "_"))
        and matches_file_name(name, context)
        and os.path.isfile(os.path.join(directory, name))
    )


def _has_buildable_files(directory: str, context: BuildContext) -> bool:
    for path in _go_files(directory, context):
        try:
            if matches_source(Path(path).read_text(encoding="utf-8"), context):
                return True
        except (BuildConstraintError, OSError, UnicodeDecodeError):
            # Loading the directory reports the failure.
            return True
    return False


def _load_directory(
    directory: str,
    import_path: str,
    context: BuildContext,
) -> Tuple[Package, List[str]]:
    """Parse every buildable Go file in ``directory`` and index its type declarations."""
    errors: List[str] = []
    files: List[GoFile] = []

    paths = _go_files(directory, context)
    if not paths:
        errors.append(f"no Go files in {directory}")

    excluded = 0
    for path in paths:
        try:
            text = Path(path).read_text(encoding="utf-8")
            if not matches_source(text, context):
                excluded += 1
                continue
            files.append(parse_go_source(text, source_file=path))
        except (BuildConstraintError, GoParseError, OSError, UnicodeDecodeError) as e:
            errors.append(f"{path}: {e}")

    if paths and excluded == len(paths):
        errors.append(f"build constraints exclude all Go files in {directory}")

    names = sorted({f.package_name for f in files})
    if len(names) > 1:
        errors.append(f"found packages {' and '.join(names)} in {directory}")

    types: Dict[str, GoTypeSpec] = {}
    for go_file in files:
        for spec in go_file.type_specs:
            if spec.name == "_":
                continue
            if spec.name in types:
                errors.append(f"{go_file.path}:{spec.line}: {spec.name} redeclared in this block")
                continue
            types[spec.name] = spec

    package = Package(
        path=import_path,
        name=names[0] if names else "",
        directory=directory,
        files=files,
        types=types,
    )
    if not errors:
        _link_names(package)
    return package, errors


def _link_names(package: Package) -> None:
    """Record the declaring package on every named type in the package."""
    for go_file in package.files:
        imports = go_file.import_map()
        for spec in go_file.type_specs:
            _link_expr(spec.type_expr, package, imports)
        for const in go_file.const_specs:
            if const.type_expr is not None:
                _link_expr(const.type_expr, package, imports)


def _link_expr(expr: GoTypeExpr, package: Package, imports: Dict[str, str]) -> None:
    if isinstance(expr, GoNamedType):
        if expr.qualifier is not None:
            expr.package_path = imports.get(expr.qualifier, expr.qualifier)
        elif expr.name in package.types or not is_predeclared(expr.name):
            expr.package_path = package.path
    elif isinstance(expr, (GoPointerType, GoSliceType, GoArrayType)):
        _link_expr(expr.elem, package, imports)
    elif isinstance(expr, GoMapType):
        _link_expr(expr.key, package, imports)
        _link_expr(expr.value, package, imports)
    elif isinstance(expr, GoStructType):
        for f in expr.fields:
            _link_expr(f.type_expr, package, imports)

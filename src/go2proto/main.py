from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from go2proto.builder import build_model
from go2proto.generator.proto_generator import OutputError, write_proto
from go2proto.loader import LoadError, load_packages


def run(
    packages: List[str],
    output: str = "output.proto",
    package_name: str = "proto",
    name_filter: str = "",
    base_dir: Optional[str] = None,
) -> str:
    """Main pipeline: load, build, write. Returns the output path."""
    base_dir = base_dir or os.getcwd()

    # 1. Load packages
    try:
        loaded = load_packages(base_dir, packages)
    except LoadError as e:
        print(f"FATAL: error fetching packages: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Loaded {len(loaded)} package(s)")
    for package in loaded:
        print(f"  {package.path}: {len(package.files)} file(s), {len(package.types)} type(s)")

    # 2. Collect messages and enums
    model = build_model(loaded, name_filter)
    print(f"Collected {len(model.messages)} message(s) and {len(model.enums)} enum(s)")
    for msg in model.messages:
        print(f"  Message {msg.name}: {len(msg.fields)} field(s) from {msg.source_file}")

    # 3. Write the proto file
    try:
        write_proto(model, output, package_name)
    except OutputError as e:
        print(f"FATAL: error writing output: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"output file written to ===> {output}")
    return output


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Generate a proto3 schema from Go types marked with @go2proto",
    )
    parser.add_argument(
        "--filter",
        default="",
        help="Filter by struct (or type) names. Case insensitive.",
    )
    parser.add_argument(
        "-f",
        "--file",
        default="output.proto",
        help="Protobuf output file path.",
    )
    parser.add_argument(
        "-n",
        "--name",
        default="proto",
        help="Package name",
    )
    parser.add_argument(
        "-p",
        "--package",
        dest="packages",
        action="append",
        default=[],
        help='Path of a package to analyse, repeatable. Relative paths ("./example/in"), '
        'module import paths and "/..." patterns are allowed.',
    )
    parser.add_argument(
        "--base-dir",
        default=None,
        help="Directory package paths are resolved against (default: current directory)",
    )

    args = parser.parse_args(argv)
    if not args.packages:
        parser.print_help(sys.stderr)
        sys.exit(1)

    run(
        args.packages,
        output=args.file,
        package_name=args.name,
        name_filter=args.filter,
        base_dir=args.base_dir,
    )

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from go2proto.loader import Package

MARKER = "@go2proto"


class AnnotationScanner:
    """Answers whether a type declaration's own doc comment carries the marker.

    Doc comments are attached to type specs by the parser, so the index is
    built once from the loaded packages and looked up by
    (package import path, type name).
    """

    def __init__(self, packages: List[Package], marker: str = MARKER):
        self._marker = marker
        self._docs: Dict[Tuple[str, str], Optional[str]] = {}
        for package in packages:
            for go_file in package.files:
                for spec in go_file.type_specs:
                    self._docs.setdefault((package.path, spec.name), spec.doc)

    def is_annotated(self, package_path: str, name: str) -> bool:
        doc = self._docs.get((package_path, name))
        return doc is not None and self._marker in doc

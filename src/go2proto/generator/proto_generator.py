from __future__ import annotations

import os
from pathlib import Path
from typing import List

from jinja2 import Environment, FileSystemLoader, TemplateError

from go2proto.field_mapper import TIMESTAMP_IMPORT, TIMESTAMP_TYPE
from go2proto.models import SchemaModel


class OutputError(Exception):
    """Raised when the proto file cannot be rendered or written."""


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _imports(model: SchemaModel) -> List[str]:
    for msg in model.messages:
        if any(f.type_name == TIMESTAMP_TYPE for f in msg.fields):
            return [TIMESTAMP_IMPORT]
    return []


def generate_proto(model: SchemaModel, package_name: str) -> str:
    """Render the proto3 source for ``model``.

    Enums only show up as a comment above the fields that use them.
    """
    try:
        template = _get_template_env().get_template("proto.j2")
        return template.render(
            package_name=package_name,
            imports=_imports(model),
            messages=model.messages,
            enums=model.enums,
        )
    except TemplateError as e:
        raise OutputError(f"unable to render template: {e}") from e


def write_proto(model: SchemaModel, file_path: str, package_name: str) -> str:
    """Render ``model`` and write it to ``file_path``, creating parent directories.

    Returns the path written.
    """
    source = generate_proto(model, package_name)
    try:
        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
        Path(file_path).write_text(source, encoding="utf-8")
    except OSError as e:
        raise OutputError(f"unable to create file {file_path}: {e}") from e
    return file_path

from __future__ import annotations

from typing import Dict, List

from go2proto.parser.go_ast import GoFile, GoNamedType


def gather_const_values(files: List[GoFile]) -> Dict[str, List[str]]:
    """Collect the values of explicitly typed constants, keyed by type name.

    For

        const (
            StatusActive   Status = "active"
            StatusInactive Status = "inactive"
        )

    this returns ``{"Status": ["active", "inactive"]}``. A constant whose
    initializer is not a string literal contributes its own name instead.

    Only specs that spell out an unqualified type are collected; members of
    an iota block that inherit the type of a previous line are not.
    """
    result: Dict[str, List[str]] = {}
    for go_file in files:
        for spec in go_file.const_specs:
            type_expr = spec.type_expr
            if not isinstance(type_expr, GoNamedType) or type_expr.qualifier is not None:
                continue
            values = result.setdefault(type_expr.name, [])
            for i, name in enumerate(spec.names):
                value = spec.values[i] if i < len(spec.values) else None
                if value is not None and value.string_value is not None:
                    values.append(value.string_value)
                else:
                    values.append(name)
    return result

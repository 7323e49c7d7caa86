"""Line-oriented structure extraction for Python sources.

No grammar is involved: headers are matched with regular expressions and a
block ends at the first later non-blank line indented no deeper than its
header.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from ..models import ImportRecord, Parameter, ParsedClass, ParsedFile, ParsedFunction

_DEF_PATTERN = re.compile(r"^(async\s+)?def\s+(\w+)\s*\(([^)]*)\)\s*(?:->[^:]*)?:")
_CLASS_PATTERN = re.compile(r"^class\s+(\w+).*:")
_IMPORT_PATTERN = re.compile(r"^(?:from\s+(\S+)\s+)?import\s+(.+)")


def _indentation(line: str) -> int:
    return len(line) - len(line.lstrip())


def find_block_end(lines: Sequence[str], start: int) -> int:
    """Return the index of the first line after ``start`` that closes its block.

    That is the first non-blank line indented at most as deep as the header,
    or ``len(lines)`` when the block runs to the end of the file. Blank lines
    never close a block.
    """
    header_indent = _indentation(lines[start])
    for index in range(start + 1, len(lines)):
        line = lines[index]
        if not line.strip():
            continue
        if _indentation(line) <= header_indent:
            return index
    return len(lines)


def parse_parameters(raw: str) -> List[Parameter]:
    """Split a parameter list on commas, keeping only the text before ``=``."""
    if not raw.strip():
        return []
    parameters: List[Parameter] = []
    for piece in raw.split(","):
        name = piece.strip().split("=", 1)[0].strip()
        if name:
            parameters.append(Parameter(name=name))
    return parameters


def _parse_import(match: re.Match[str]) -> ImportRecord:
    source = match.group(1) or "builtin"
    names = [name.strip().strip("()").strip() for name in match.group(2).split(",")]
    return ImportRecord(source=source, names=[name for name in names if name])


def _function_at(lines: Sequence[str], index: int, match: re.Match[str], *, exported: bool) -> ParsedFunction:
    return ParsedFunction(
        name=match.group(2),
        start_line=index + 1,
        end_line=find_block_end(lines, index),
        parameters=parse_parameters(match.group(3)),
        is_async=bool(match.group(1)),
        is_exported=exported,
    )


def _collect_methods(lines: Sequence[str], header: int, end: int) -> List[ParsedFunction]:
    body_indent = None
    methods: List[ParsedFunction] = []
    for index in range(header + 1, min(end, len(lines))):
        line = lines[index]
        stripped = line.strip()
        if not stripped:
            continue
        indent = _indentation(line)
        if body_indent is None:
            body_indent = indent
        if indent != body_indent:
            continue
        match = _DEF_PATTERN.match(stripped)
        if match:
            methods.append(_function_at(lines, index, match, exported=False))
    return methods


def extract_python(file_name: str, source_text: str) -> ParsedFile:
    lines = source_text.split("\n")
    functions: List[ParsedFunction] = []
    classes: List[ParsedClass] = []
    imports: List[ImportRecord] = []

    for index, raw_line in enumerate(lines):
        # only module scope; class bodies are handled by _collect_methods
        if _indentation(raw_line) != 0:
            continue
        line = raw_line.strip()
        if not line:
            continue

        func_match = _DEF_PATTERN.match(line)
        if func_match:
            functions.append(_function_at(lines, index, func_match, exported=True))
            continue

        class_match = _CLASS_PATTERN.match(line)
        if class_match:
            end = find_block_end(lines, index)
            classes.append(
                ParsedClass(
                    name=class_match.group(1),
                    start_line=index + 1,
                    end_line=end,
                    methods=_collect_methods(lines, index, end),
                    is_exported=True,
                )
            )
            continue

        import_match = _IMPORT_PATTERN.match(line)
        if import_match:
            imports.append(_parse_import(import_match))

    exports = [func.name for func in functions] + [cls.name for cls in classes]
    return ParsedFile(
        file_name=file_name,
        language="python",
        functions=functions,
        classes=classes,
        imports=imports,
        exports=exports,
    )


__all__ = ["extract_python", "find_block_end", "parse_parameters"]

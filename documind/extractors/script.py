"""Tree-sitter powered structure extraction for JavaScript and TypeScript."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from ..logging import get_logger
from ..models import ImportRecord, Parameter, ParsedClass, ParsedFile, ParsedFunction, Property

logger = get_logger("extractors.script")

_GRAMMAR_BY_SUFFIX = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

_LANGUAGE_LOADERS: Dict[str, Callable[[], Any]] = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}

_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
_FUNCTION_EXPRESSIONS = {"function_expression", "function", "generator_function"}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_VARIABLE_DECLARATIONS = {"lexical_declaration", "variable_declaration"}
_FIELD_NAMES = {"field_definition": "property", "public_field_definition": "name"}

_languages: Dict[str, Language] = {}

_MISSING = object()

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def _language(grammar: str) -> Language:
    language = _languages.get(grammar)
    if language is None:
        language = Language(_LANGUAGE_LOADERS[grammar]())
        _languages[grammar] = language
    return language


def _text(node: Node) -> str:
    return (node.text or b"").decode("utf-8", errors="replace")


def _span(node: Node) -> Tuple[int, int]:
    return node.start_point[0] + 1, node.end_point[0] + 1


def _has_token(node: Node, token: str) -> bool:
    return any(child.type == token for child in node.children)


def _unescape(sequence: str) -> str:
    """Decode one JavaScript escape sequence such as ``\\n``, ``\\x41`` or ``\\u{1F600}``."""
    body = sequence[1:]
    if body[:1] in {"x", "u"} and len(body) > 1:
        try:
            return chr(int(body[1:].strip("{}"), 16))
        except ValueError:
            return body
    if body in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[body]
    if body[:1] in {"\r", "\n", "\u2028", "\u2029"}:
        # line continuation
        return ""
    # identity escapes such as \' or \q stand for the character itself
    return body


def _string_value(node: Node) -> str:
    parts: List[str] = []
    for child in node.named_children:
        if child.type == "escape_sequence":
            parts.append(_unescape(_text(child)))
        else:
            parts.append(_text(child))
    return "".join(parts)


def _literal_value(node: Node) -> Any:
    """Return the Python value of a literal constant, or ``_MISSING``."""
    kind = node.type
    if kind == "string":
        return _string_value(node)
    if kind == "number":
        raw = _text(node).replace("_", "")
        if raw.endswith("n"):
            return _MISSING
        try:
            return int(raw, 0)
        except ValueError:
            pass
        try:
            return float(raw)
        except ValueError:
            return _MISSING
    if kind == "true":
        return True
    if kind == "false":
        return False
    if kind == "null":
        return None
    return _MISSING


def _defaulted(name_node: Node, value_node: Node) -> Parameter:
    value = _literal_value(value_node)
    if value is _MISSING:
        return Parameter(name=_text(name_node))
    return Parameter(name=_text(name_node), default_value=value, has_default=True)


def _parameter(node: Node) -> Parameter:
    kind = node.type
    if kind in {"required_parameter", "optional_parameter"}:
        pattern = node.child_by_field_name("pattern")
        value = node.child_by_field_name("value")
        if pattern is None:
            return Parameter(name="unknown")
        if value is not None:
            if pattern.type != "identifier":
                return Parameter(name="unknown")
            return _defaulted(pattern, value)
        return _parameter(pattern)
    if kind in {"identifier", "this"}:
        return Parameter(name=_text(node))
    if kind == "assignment_pattern":
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if left is not None and right is not None and left.type == "identifier":
            return _defaulted(left, right)
        return Parameter(name="unknown")
    if kind == "object_pattern":
        return Parameter(name="destructured")
    if kind == "array_pattern":
        return Parameter(name="arrayDestructured")
    if kind == "rest_pattern":
        for child in node.named_children:
            if child.type == "identifier":
                return Parameter(name=_text(child))
    return Parameter(name="unknown")


def _parameters(node: Optional[Node]) -> List[Parameter]:
    if node is None:
        return []
    if node.type == "identifier":
        return [Parameter(name=_text(node))]
    return [
        _parameter(child)
        for child in node.named_children
        if child.type not in {"comment", "decorator"}
    ]


def _function(name: str, node: Node) -> ParsedFunction:
    start, end = _span(node)
    parameters = node.child_by_field_name("parameters")
    if parameters is None:
        parameters = node.child_by_field_name("parameter")
    return ParsedFunction(
        name=name,
        start_line=start,
        end_line=end,
        parameters=_parameters(parameters),
        is_async=_has_token(node, "async"),
        is_exported=False,
    )


class _ScriptCollector:
    """Accumulates the declarations of one syntax tree.

    Function declarations, imports and exports are taken from module scope
    only. Arrow-function variables and class declarations are also collected
    from nested scopes (function bodies, methods, blocks), in source order.
    """

    def __init__(self) -> None:
        self.functions: List[ParsedFunction] = []
        self.classes: List[ParsedClass] = []
        self.imports: List[ImportRecord] = []
        self.exports: List[str] = []

    def visit_program(self, root: Node) -> None:
        for statement in root.named_children:
            if statement.type == "export_statement":
                visited = self._visit_export(statement)
            else:
                self._visit_statement(statement)
                visited = statement
            if visited is not None:
                self._visit_nested(visited.named_children)

    def _visit_nested(self, nodes: List[Node]) -> None:
        pending = list(reversed(nodes))
        while pending:
            node = pending.pop()
            if node.type in _VARIABLE_DECLARATIONS:
                self._variables(node)
            elif node.type in _CLASS_DECLARATIONS:
                parsed = self._class(node)
                if parsed is not None:
                    self.classes.append(parsed)
            pending.extend(reversed(node.named_children))

    def _visit_export(self, node: Node) -> Optional[Node]:
        declaration = node.child_by_field_name("declaration")
        if declaration is None:
            # export default <expression>; named function/class expressions still count
            value = node.child_by_field_name("value")
            if value is not None and (
                value.type in _FUNCTION_EXPRESSIONS or value.type == "class"
            ):
                self._visit_statement(value)
            return value
        name = self._visit_statement(declaration)
        is_default = _has_token(node, "default")
        if name and not is_default and (
            declaration.type in _FUNCTION_DECLARATIONS or declaration.type in _CLASS_DECLARATIONS
        ):
            self.exports.append(name)
        return declaration

    def _visit_statement(self, node: Node) -> Optional[str]:
        kind = node.type
        if kind in _FUNCTION_DECLARATIONS or kind in _FUNCTION_EXPRESSIONS:
            name_node = node.child_by_field_name("name")
            if name_node is None:
                return None
            name = _text(name_node)
            self.functions.append(_function(name, node))
            return name
        if kind in _CLASS_DECLARATIONS or kind == "class":
            parsed = self._class(node)
            if parsed is None:
                return None
            self.classes.append(parsed)
            return parsed.name
        if kind in _VARIABLE_DECLARATIONS:
            self._variables(node)
        elif kind == "import_statement":
            record = self._import(node)
            if record is not None:
                self.imports.append(record)
        return None

    def _variables(self, node: Node) -> None:
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name_node is None or value is None:
                continue
            if name_node.type == "identifier" and value.type == "arrow_function":
                self.functions.append(_function(_text(name_node), value))

    def _class(self, node: Node) -> Optional[ParsedClass]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        methods: List[ParsedFunction] = []
        properties: List[Property] = []
        body = node.child_by_field_name("body")
        members = body.named_children if body is not None else []
        for member in members:
            if member.type == "method_definition":
                key = member.child_by_field_name("name")
                if key is not None and key.type == "property_identifier":
                    methods.append(_function(_text(key), member))
            elif member.type in _FIELD_NAMES:
                key = member.child_by_field_name(_FIELD_NAMES[member.type])
                if key is not None and key.type == "property_identifier":
                    properties.append(
                        Property(name=_text(key), is_static=_has_token(member, "static"))
                    )
        start, end = _span(node)
        return ParsedClass(
            name=_text(name_node),
            start_line=start,
            end_line=end,
            methods=methods,
            properties=properties,
            is_exported=False,
        )

    @staticmethod
    def _import(node: Node) -> Optional[ImportRecord]:
        source = node.child_by_field_name("source")
        if source is None or source.type != "string":
            return None
        names: List[str] = []
        for clause in node.named_children:
            if clause.type != "import_clause":
                continue
            for binding in clause.named_children:
                if binding.type == "identifier":
                    names.append(_text(binding))
                elif binding.type == "namespace_import":
                    names.extend(
                        _text(child) for child in binding.named_children if child.type == "identifier"
                    )
                elif binding.type == "named_imports":
                    for specifier in binding.named_children:
                        if specifier.type != "import_specifier":
                            continue
                        local = specifier.child_by_field_name("alias") or specifier.child_by_field_name("name")
                        if local is not None:
                            names.append(_text(local))
        return ImportRecord(source=_text(source)[1:-1], names=names)


def extract_script(file_name: str, source_text: str) -> ParsedFile:
    suffix = PurePosixPath(file_name).suffix.lower()
    grammar = _GRAMMAR_BY_SUFFIX.get(suffix, "javascript")
    language = "typescript" if grammar in {"typescript", "tsx"} else "javascript"
    empty = ParsedFile(file_name=file_name, language=language)

    try:
        parser = Parser(_language(grammar))
        tree = parser.parse(source_text.encode("utf-8"))
    except Exception as exc:  # pragma: no cover
        logger.warning("Failed to parse %s: %s", file_name, exc)
        return empty

    if tree.root_node.has_error:
        logger.warning("Failed to parse %s: syntax error", file_name)
        return empty

    collector = _ScriptCollector()
    collector.visit_program(tree.root_node)
    return ParsedFile(
        file_name=file_name,
        language=language,
        functions=collector.functions,
        classes=collector.classes,
        imports=collector.imports,
        exports=collector.exports,
    )


__all__ = ["extract_script"]

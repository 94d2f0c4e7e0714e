"""Per-module transforms: TypeScript erasure and registry linking."""

from __future__ import annotations

import json
import re
from bisect import bisect_left
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node

from ..errors import TransformError
from .graph import ModuleLink
from .parser import node_text, parse_source

Linker = Callable[[str], ModuleLink]

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")

# Type-only syntax with no runtime meaning.
_ERASED = frozenset(
    {
        "type_annotation",
        "type_parameters",
        "type_arguments",
        "type_predicate_annotation",
        "asserts_annotation",
        "implements_clause",
        "accessibility_modifier",
        "override_modifier",
        "interface_declaration",
        "type_alias_declaration",
        "ambient_declaration",
        "function_signature",
        "method_signature",
        "abstract_method_signature",
        "index_signature",
        "hash_bang_line",
    }
)

_TYPE_DECLARATIONS = frozenset(
    {"interface_declaration", "type_alias_declaration", "ambient_declaration", "function_signature"}
)

_VALUE_DECLARATIONS = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "abstract_class_declaration",
        "lexical_declaration",
        "variable_declaration",
        "enum_declaration",
    }
)

_UNSUPPORTED = {
    "internal_module": "namespaces are not supported",
    "module": "module declarations are not supported",
    "import_alias": "import aliases are not supported",
    "jsx_element": "JSX is not supported",
    "jsx_self_closing_element": "JSX is not supported",
}

_PARAMETER_PROPERTY_TOKENS = frozenset({"accessibility_modifier", "override_modifier", "readonly"})

_REFERENCE_KINDS = frozenset({"identifier", "shorthand_property_identifier"})

_FUNCTION_SCOPES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)

# Function expressions whose own name is visible only inside their body.
_NAMED_FUNCTION_EXPRESSIONS = frozenset({"function_expression", "function", "generator_function"})

_BLOCK_SCOPES = frozenset({"statement_block", "class_static_block", "switch_body"})


@dataclass(frozen=True)
class TransformResult:
    """Linked module code plus the export facts the bundle footer needs."""

    code: str
    export_names: Tuple[str, ...]
    star_sources: Tuple[ModuleLink, ...]
    is_esm: bool


class ModuleTransformer:
    """Rewrites one script module into a registry function body.

    Imports become ``__nb_require``/``__nb_external`` lookups, exports become live
    getters installed with ``__nb_export``, and TypeScript-only syntax is erased.
    Every import specifier is handed to ``link`` exactly once per occurrence.

    Imported bindings stay live: each reference to an imported name is rewritten
    into a property read on the linked module object, so modules that import
    each other only observe a binding when the code using it actually runs.
    """

    def __init__(
        self,
        source: str | bytes,
        path: Path | str,
        link: Linker,
        *,
        dialect: str = "typescript",
        sfc_template: Optional[str] = None,
        line_offset: int = 0,
    ) -> None:
        self._source = source.encode("utf-8") if isinstance(source, str) else source
        self._path = str(path)
        self._link_fn = link
        self._dialect = dialect
        self._sfc_template = sfc_template
        self._line_offset = line_offset

        self._marks: List[int] = []
        self._value_refs: Set[str] = set()
        self._type_names: Set[str] = set()
        self._value_names: Set[str] = set()
        self._exports: Dict[str, str] = {}
        self._star_links: List[ModuleLink] = []
        self._import_temps: Dict[int, str] = {}
        self._imported: Dict[str, str] = {}
        self._member_imports: Set[str] = set()
        self._references: Dict[int, str] = {}
        self._trailer: List[str] = []
        self._temp_count = 0
        self._is_esm = False
        self._has_default = False

        self._handlers: Dict[str, Callable[[Node], str]] = {
            "as_expression": self._unwrap_first,
            "satisfies_expression": self._unwrap_first,
            "non_null_expression": self._unwrap_first,
            "type_assertion": self._unwrap_last,
            "call_expression": self._call,
            "enum_declaration": self._enum,
            "required_parameter": self._parameter,
            "optional_parameter": self._parameter,
            "public_field_definition": self._field,
            "method_definition": lambda node: self._splice(node, drop={"?"}),
            "abstract_class_declaration": lambda node: self._splice(node, drop={"abstract"}),
            "variable_declarator": lambda node: self._splice(node, drop={"!"}),
        }
        for kind, message in _UNSUPPORTED.items():
            self._handlers[kind] = self._rejecter(message)

    def transform(self) -> TransformResult:
        tree = parse_source(self._source, self._dialect, self._path, line_offset=self._line_offset)
        root = tree.root_node
        self._scan(root)

        parts: List[str] = []
        cursor = 0
        for child in root.children:
            parts.append(self._slice(cursor, child.start_byte))
            parts.append(self._render_statement(child))
            cursor = child.end_byte
        parts.append(self._slice(cursor, len(self._source)))
        body = "".join(parts)
        if self._trailer:
            body += "\n" + "\n".join(self._trailer) + "\n"

        if self._sfc_template is not None and not self._has_default:
            self._add_export("default", "__nb_sfc")
            body += f"\nconst __nb_sfc = {{ template: {json.dumps(self._sfc_template)} }};\n"

        header: List[str] = []
        if self._is_esm or self._exports:
            header.append('Object.defineProperty(exports, "__esModule", { value: true });')
        if self._exports:
            getters = ", ".join(
                f"{json.dumps(name)}: () => {expression}" for name, expression in self._exports.items()
            )
            header.append(f"__nb_export(exports, {{ {getters} }});")

        code = "\n".join([*header, body]) if header else body
        return TransformResult(
            code=code,
            export_names=tuple(self._exports),
            star_sources=tuple(self._star_links),
            is_esm=self._is_esm or bool(self._exports),
        )

    # ------------------------------------------------------------------
    # Pre-pass

    def _scan(self, root: Node) -> None:
        marks: List[int] = []
        stack = [root]
        while stack:
            node = stack.pop()
            kind = node.type
            if kind == "import_statement":
                continue
            if kind in _ERASED:
                marks.append(node.start_byte)
                continue
            if kind == "export_statement" and self._is_type_only_export(node):
                continue
            if kind == "call_expression":
                if self._loader_name(node) is not None:
                    marks.append(node.start_byte)
            elif kind in self._handlers:
                marks.append(node.start_byte)
            if kind in _REFERENCE_KINDS:
                self._value_refs.add(self._text(node))
            stack.extend(node.children)

        for child in root.named_children:
            declaration = child
            if child.type == "export_statement":
                declaration = child.child_by_field_name("declaration")
                if declaration is None:
                    continue
            if declaration.type in {"interface_declaration", "type_alias_declaration"}:
                name = declaration.child_by_field_name("name")
                if name is not None:
                    self._type_names.add(self._text(name))
            elif declaration.type in _VALUE_DECLARATIONS:
                self._value_names.update(self._declared_names(declaration))
            elif declaration.type == "import_statement":
                self._value_names.update(self._import_locals(declaration))
                self._bind_import(declaration)

        if self._imported:
            marks.extend(self._scan_references(root))
        marks.sort()
        self._marks = marks

    def _bind_import(self, node: Node) -> None:
        """Allocate the module binding of a value import and map its used locals."""
        if self._has_token(node, "type") or self._child_of_type(node, "import_require_clause") is not None:
            return
        clause = self._child_of_type(node, "import_clause")
        if clause is None:
            return

        locals_: List[Tuple[str, Optional[str]]] = []
        for part in clause.named_children:
            if part.type == "identifier":
                locals_.append((self._text(part), "default"))
            elif part.type == "namespace_import":
                identifier = self._child_of_type(part, "identifier")
                if identifier is not None:
                    locals_.append((self._text(identifier), None))
            elif part.type == "named_imports":
                locals_.extend((local, imported) for imported, local in self._import_specifiers(part))

        used = [(local, imported) for local, imported in locals_ if local in self._value_refs]
        if not used:
            return
        binding = self._temp()
        self._import_temps[node.start_byte] = binding
        for local, imported in used:
            if imported is None:
                self._imported[local] = binding
            elif imported == "default":
                self._imported[local] = f"__nb_default({binding})"
            else:
                self._imported[local] = self._member(binding, imported)
                self._member_imports.add(local)

    def _scan_references(self, root: Node) -> List[int]:
        """Record every reference to an imported local that no inner scope shadows."""
        marks: List[int] = []
        stack: List[Tuple[Node, frozenset[str]]] = [(child, frozenset()) for child in root.children]
        while stack:
            node, shadowed = stack.pop()
            kind = node.type
            if kind in _ERASED or kind == "import_statement":
                continue
            if kind == "export_statement" and self._is_type_only_export(node):
                continue
            declared = self._scope_names(node).intersection(self._imported)
            if declared:
                shadowed = shadowed.union(declared)
            if kind in _REFERENCE_KINDS:
                name = self._text(node)
                if name in self._imported and name not in shadowed:
                    self._references[node.start_byte] = self._reference(node, name)
                    marks.append(node.start_byte)
                continue
            stack.extend((child, shadowed) for child in node.children)
        return marks

    def _scope_names(self, node: Node) -> Set[str]:
        kind = node.type
        names: Set[str] = set()
        if kind in _FUNCTION_SCOPES:
            if kind in _NAMED_FUNCTION_EXPRESSIONS:
                name = node.child_by_field_name("name")
                if name is not None:
                    names.add(self._text(name))
            parameters = node.child_by_field_name("parameters")
            if parameters is not None:
                for parameter in parameters.named_children:
                    pattern = parameter.child_by_field_name("pattern")
                    names.update(self._binding_names(pattern if pattern is not None else parameter))
            parameter = node.child_by_field_name("parameter")
            if parameter is not None:
                names.update(self._binding_names(parameter))
        elif kind in _BLOCK_SCOPES:
            for child in node.named_children:
                if child.type in _VALUE_DECLARATIONS:
                    names.update(self._declared_names(child))
        elif kind in {"for_statement", "for_in_statement"}:
            initializer = node.child_by_field_name("initializer")
            if initializer is not None and initializer.type in {"lexical_declaration", "variable_declaration"}:
                names.update(self._declared_names(initializer))
            left = node.child_by_field_name("left")
            if left is not None and node.child_by_field_name("kind") is not None:
                names.update(self._binding_names(left))
        elif kind == "catch_clause":
            parameter = node.child_by_field_name("parameter")
            if parameter is not None:
                names.update(self._binding_names(parameter))
        return names

    def _reference(self, node: Node, name: str) -> str:
        expression = self._imported[name]
        if node.type == "shorthand_property_identifier":
            return f"{name}: {expression}"
        if name in self._member_imports and self._is_callee(node):
            # Calls through the module object must not bind `this` to it.
            return f"(0, {expression})"
        return expression

    @staticmethod
    def _is_callee(node: Node) -> bool:
        parent = node.parent
        if parent is None or parent.type != "call_expression":
            return False
        callee = parent.child_by_field_name("function")
        return callee is not None and callee.start_byte == node.start_byte and callee.end_byte == node.end_byte

    # ------------------------------------------------------------------
    # Rendering

    def _render_statement(self, node: Node) -> str:
        if node.type == "import_statement":
            self._is_esm = True
            return self._import(node)
        if node.type == "export_statement":
            self._is_esm = True
            return self._export(node)
        return self._render(node)

    def _render(self, node: Node) -> str:
        kind = node.type
        if kind in _ERASED:
            return ""
        if not self._contains_mark(node):
            return self._text(node)
        if kind in _REFERENCE_KINDS:
            return self._references.get(node.start_byte, self._text(node))
        handler = self._handlers.get(kind)
        if handler is not None:
            return handler(node)
        return self._splice(node)

    def _splice(self, node: Node, drop: Set[str] | frozenset[str] = frozenset()) -> str:
        parts: List[str] = []
        cursor = node.start_byte
        for child in node.children:
            parts.append(self._slice(cursor, child.start_byte))
            if child.type not in drop:
                parts.append(self._render(child))
            cursor = child.end_byte
        parts.append(self._slice(cursor, node.end_byte))
        return "".join(parts)

    def _contains_mark(self, node: Node) -> bool:
        index = bisect_left(self._marks, node.start_byte)
        return index < len(self._marks) and self._marks[index] < node.end_byte

    def _unwrap_first(self, node: Node) -> str:
        return self._render(node.named_children[0])

    def _unwrap_last(self, node: Node) -> str:
        return self._render(node.named_children[-1])

    def _parameter(self, node: Node) -> str:
        for child in node.children:
            if child.type in _PARAMETER_PROPERTY_TOKENS:
                raise self._error(node, "constructor parameter properties are not supported")
        return self._splice(node, drop={"?"})

    def _field(self, node: Node) -> str:
        if self._has_token(node, "declare") or self._has_token(node, "abstract"):
            return ""
        return self._splice(node, drop={"readonly", "?", "!"})

    def _rejecter(self, message: str) -> Callable[[Node], str]:
        def reject(node: Node) -> str:
            raise self._error(node, message)

        return reject

    def _call(self, node: Node) -> str:
        loader = self._loader_name(node)
        specifier = self._single_string_argument(node.child_by_field_name("arguments"))
        if loader is None or specifier is None:
            return self._splice(node)
        expression = self._link(specifier).expression()
        if loader == "import":
            return f"Promise.resolve().then(() => {expression})"
        return expression

    def _enum(self, node: Node) -> str:
        name = self._text(node.child_by_field_name("name"))
        body = node.child_by_field_name("body")
        lines = [f"var {name};", f"(function ({name}) {{"]
        next_value: Optional[int] = 0
        for member in body.named_children if body is not None else []:
            if member.type == "enum_assignment":
                key_node = member.child_by_field_name("name")
                value_node = member.child_by_field_name("value")
            elif member.type in {"property_identifier", "string"}:
                key_node, value_node = member, None
            else:
                continue
            key = json.dumps(self._member_name(key_node))
            if value_node is None:
                if next_value is None:
                    raise self._error(member, f"enum member {key} must have an initializer")
                lines.append(f"  {name}[{name}[{key}] = {next_value}] = {key};")
                next_value += 1
                continue
            constant = self._constant_int(value_node)
            if value_node.type in {"string", "template_string"}:
                lines.append(f"  {name}[{key}] = {self._render(value_node)};")
                next_value = None
            else:
                lines.append(f"  {name}[{name}[{key}] = {self._render(value_node)}] = {key};")
                next_value = constant + 1 if constant is not None else None
        lines.append(f"}})({name} || ({name} = {{}}));")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Module wiring

    def _import(self, node: Node) -> str:
        if self._has_token(node, "type"):
            return ""
        if any(child.type == "import_require_clause" for child in node.children):
            raise self._error(node, "import ... = require() is not supported")
        specifier = self._string_value(node.child_by_field_name("source"))
        if self._child_of_type(node, "import_clause") is None:
            return f"{self._link(specifier).expression()};"
        binding = self._import_temps.get(node.start_byte)
        if binding is None:
            return ""
        return f"const {binding} = {self._link(specifier).expression()};"

    def _export(self, node: Node) -> str:
        if self._is_type_only_export(node):
            return ""
        if self._has_token(node, "="):
            raise self._error(node, "export = is not supported")

        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")
        source = node.child_by_field_name("source")

        if declaration is not None and declaration.type in _TYPE_DECLARATIONS:
            return ""
        if self._has_token(node, "default"):
            return self._export_default(declaration, value)
        if declaration is not None:
            rendered = self._render(declaration)
            for name in self._declared_names(declaration):
                self._add_export(name, name)
            return rendered

        clause = self._child_of_type(node, "export_clause")
        if source is None:
            for local, exported in self._export_specifiers(clause):
                if local in self._type_names and local not in self._value_names:
                    continue
                self._add_export(exported, self._imported.get(local, local))
            return ""

        specifier = self._string_value(source)
        namespace_export = self._child_of_type(node, "namespace_export")
        if namespace_export is not None:
            binding = self._temp()
            exported = self._export_name(namespace_export.named_children[-1])
            self._add_export(exported, binding)
            return f"const {binding} = {self._link(specifier).expression()};"
        if clause is not None:
            specifiers = list(self._export_specifiers(clause))
            if not specifiers:
                return ""
            binding = self._temp()
            for local, exported in specifiers:
                self._add_export(exported, self._member(binding, local))
            return f"const {binding} = {self._link(specifier).expression()};"

        link = self._link(specifier)
        self._star_links.append(link)
        return f"__nb_reexport(exports, {link.expression()});"

    def _export_default(self, declaration: Optional[Node], value: Optional[Node]) -> str:
        self._has_default = True
        template = self._sfc_template
        if declaration is not None:
            rendered = self._render(declaration)
            name_node = declaration.child_by_field_name("name")
            if name_node is not None:
                name = self._text(name_node)
                self._add_export("default", name)
                if template is not None:
                    rendered += f"\n{name}.template = {json.dumps(template)};"
                return rendered
        else:
            rendered = self._render(value) if value is not None else "undefined"

        binding = "__nb_sfc" if template is not None else "__nb_default_export"
        self._add_export("default", binding)
        code = f"const {binding} = {rendered};"
        if template is not None:
            code += f" {binding}.template = {json.dumps(template)};"
        return code

    # ------------------------------------------------------------------
    # Helpers

    def _link(self, specifier: str) -> ModuleLink:
        return self._link_fn(specifier)

    def _add_export(self, name: str, expression: str) -> None:
        self._exports[name] = expression
        if name == "default" and not self._has_default:
            self._has_default = True
            if self._sfc_template is not None and expression != "__nb_sfc":
                self._trailer.append(f"{expression}.template = {json.dumps(self._sfc_template)};")

    def _temp(self) -> str:
        name = f"__nb_m{self._temp_count}"
        self._temp_count += 1
        return name

    def _import_specifiers(self, named_imports: Node) -> Iterator[Tuple[str, str]]:
        for specifier in named_imports.named_children:
            if specifier.type != "import_specifier" or self._has_token(specifier, "type"):
                continue
            name_node = specifier.child_by_field_name("name")
            alias_node = specifier.child_by_field_name("alias")
            imported = self._export_name(name_node)
            local = self._text(alias_node) if alias_node is not None else imported
            yield imported, local

    def _import_locals(self, node: Node) -> List[str]:
        clause = self._child_of_type(node, "import_clause")
        if clause is None:
            return []
        names: List[str] = []
        for part in clause.named_children:
            if part.type == "identifier":
                names.append(self._text(part))
            elif part.type == "namespace_import":
                identifier = self._child_of_type(part, "identifier")
                if identifier is not None:
                    names.append(self._text(identifier))
            elif part.type == "named_imports":
                names.extend(local for _, local in self._import_specifiers(part))
        return names

    def _export_specifiers(self, clause: Optional[Node]) -> Iterator[Tuple[str, str]]:
        if clause is None:
            return
        for specifier in clause.named_children:
            if specifier.type != "export_specifier" or self._has_token(specifier, "type"):
                continue
            local = self._export_name(specifier.child_by_field_name("name"))
            alias_node = specifier.child_by_field_name("alias")
            exported = self._export_name(alias_node) if alias_node is not None else local
            yield local, exported

    def _declared_names(self, declaration: Node) -> List[str]:
        if declaration.type in {"lexical_declaration", "variable_declaration"}:
            names: List[str] = []
            for child in declaration.named_children:
                if child.type == "variable_declarator":
                    pattern = child.child_by_field_name("name")
                    if pattern is not None:
                        names.extend(self._binding_names(pattern))
            return names
        name = declaration.child_by_field_name("name")
        return [self._text(name)] if name is not None else []

    def _binding_names(self, node: Node) -> List[str]:
        kind = node.type
        if kind in {"identifier", "shorthand_property_identifier_pattern"}:
            return [self._text(node)]
        if kind == "pair_pattern":
            value = node.child_by_field_name("value")
            return self._binding_names(value) if value is not None else []
        if kind in {"assignment_pattern", "object_assignment_pattern"}:
            left = node.child_by_field_name("left")
            return self._binding_names(left) if left is not None else []
        if kind in {"object_pattern", "array_pattern", "rest_pattern"}:
            names: List[str] = []
            for child in node.named_children:
                names.extend(self._binding_names(child))
            return names
        return []

    def _is_type_only_export(self, node: Node) -> bool:
        return self._has_token(node, "type") or self._has_token(node, "namespace")

    def _loader_name(self, node: Node) -> Optional[str]:
        function = node.child_by_field_name("function")
        if function is None:
            return None
        if function.type == "import":
            return "import"
        if function.type == "identifier" and self._text(function) == "require":
            return "require"
        return None

    def _single_string_argument(self, arguments: Optional[Node]) -> Optional[str]:
        if arguments is None:
            return None
        values = [child for child in arguments.named_children if child.type != "comment"]
        if len(values) != 1 or values[0].type != "string":
            return None
        return self._string_value(values[0])

    def _constant_int(self, node: Node) -> Optional[int]:
        text = self._text(node).replace("_", "")
        negative = False
        if node.type == "unary_expression" and text.startswith("-"):
            negative, text = True, text[1:].strip()
        elif node.type != "number":
            return None
        try:
            value = int(text, 0)
        except ValueError:
            return None
        return -value if negative else value

    def _export_name(self, node: Node) -> str:
        return self._string_value(node) if node.type == "string" else self._text(node)

    def _member_name(self, node: Node) -> str:
        return self._string_value(node) if node.type == "string" else self._text(node)

    def _string_value(self, node: Node) -> str:
        return self._text(node)[1:-1]

    @staticmethod
    def _member(binding: str, name: str) -> str:
        return f"{binding}.{name}" if _IDENTIFIER.match(name) else f"{binding}[{json.dumps(name)}]"

    @staticmethod
    def _has_token(node: Node, token: str) -> bool:
        return any(child.type == token for child in node.children)

    @staticmethod
    def _child_of_type(node: Node, kind: str) -> Optional[Node]:
        for child in node.children:
            if child.type == kind:
                return child
        return None

    def _text(self, node: Node) -> str:
        return node_text(node, self._source)

    def _slice(self, start: int, end: int) -> str:
        return self._source[start:end].decode("utf-8")

    def _error(self, node: Node, message: str) -> TransformError:
        row, column = node.start_point
        return TransformError(self._path, message, line=row + 1 + self._line_offset, column=column + 1)


__all__ = ["Linker", "ModuleTransformer", "TransformResult"]

"""Normalizer for the Python grammar family."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Set, Tuple

from tree_sitter import Node

from ..models import (
    ClassDescriptor,
    ExportSpec,
    FieldDescriptor,
    FunctionSignature,
    ImportEdgeSpec,
    Language,
    ModuleDescriptor,
    RouteRegistration,
    SourceSpan,
)
from ..parsing import ParsedSource
from .base import (
    HTTP_VERBS,
    compact_text,
    iter_descendants,
    last_segment,
    node_text,
    normalize_route,
    span_of,
    string_value,
    unique,
    visibility_for_name,
)

_MAIN_GUARD = re.compile(r"""__name__\s*==\s*['"]__main__['"]|['"]__main__['"]\s*==\s*__name__""")
_STATIC_DECORATORS = {"staticmethod", "classmethod"}
_COMPOUND_BLOCKS = {"if_statement", "try_statement", "with_statement", "else_clause", "elif_clause",
                    "except_clause", "finally_clause", "block"}
_NESTED_SCOPES = ("function_definition", "class_definition", "lambda")
_ASSIGNMENT_STATEMENTS = {"expression_statement", "assignment"}
_EXCEPTION_SUFFIXES = ("Error", "Exception", "Warning")
_ABSTRACT_BASES = {"ABC", "Protocol"}


class PythonNormalizer:
    """Builds module descriptors from tree-sitter-python trees."""

    language = Language.PY_LIKE

    def normalize(self, path: str, parsed: ParsedSource) -> ModuleDescriptor:
        source = parsed.source
        root = parsed.root
        module = _ModuleState(path=path, source=source)

        imports = tuple(_collect_imports(root, source))
        module.imported_frameworks = _imported_frameworks(imports)
        module.public_names = _dunder_all(root, source)
        for node in _top_level_statements(root):
            module.visit(node)

        exports = module.exports()
        return ModuleDescriptor(
            path=path,
            language=self.language,
            grammar=parsed.grammar,
            functions=tuple(module.functions),
            classes=tuple(module.classes),
            imports=imports,
            exports=exports,
            routes=tuple(module.routes),
            has_main_guard=module.has_main_guard,
        )


class _ModuleState:
    def __init__(self, path: str, source: bytes) -> None:
        self.path = path
        self.source = source
        self.functions: List[FunctionSignature] = []
        self.classes: List[ClassDescriptor] = []
        self.routes: List[RouteRegistration] = []
        self.has_main_guard = False
        self.public_names: Optional[Tuple[Tuple[str, ...], Tuple[int, int]]] = None
        self.imported_frameworks: Set[str] = set()

    # ------------------------------------------------------------------
    # Statement dispatch

    def visit(self, node: Node) -> None:
        if node.type == "function_definition":
            self.functions.append(self._function(node, decorators=()))
        elif node.type == "class_definition":
            self.classes.append(self._class(node, decorators=()))
        elif node.type == "decorated_definition":
            decorators = self._decorators(node)
            definition = node.child_by_field_name("definition")
            if definition is None:
                return
            if definition.type == "function_definition":
                function = self._function(definition, decorators=decorators, outer=node)
                self.functions.append(function)
                self._routes_from_decorators(node, function.name, prefix="")
            elif definition.type == "class_definition":
                self.classes.append(self._class(definition, decorators=decorators, outer=node))
        elif node.type == "if_statement":
            condition = node.child_by_field_name("condition")
            if condition is not None and _MAIN_GUARD.search(node_text(condition, self.source)):
                self.has_main_guard = True

    # ------------------------------------------------------------------
    # Definitions

    def _function(
        self,
        node: Node,
        *,
        decorators: Tuple[str, ...],
        outer: Optional[Node] = None,
        in_class: bool = False,
    ) -> FunctionSignature:
        name = node_text(node.child_by_field_name("name"), self.source)
        return_type = node.child_by_field_name("return_type")
        decorator_names = {last_segment(item.split("(", 1)[0]) for item in decorators}
        return FunctionSignature(
            name=name,
            parameters=_parameters(node.child_by_field_name("parameters"), self.source),
            span=span_of(outer or node),
            return_type=compact_text(return_type, self.source) if return_type is not None else None,
            is_async=any(child.type == "async" for child in node.children),
            is_exported=False if in_class else self._is_public(name),
            is_static=bool(decorator_names & _STATIC_DECORATORS),
            visibility=visibility_for_name(name),
            decorators=decorators,
            instantiates=_instantiations(node.child_by_field_name("body"), self.source),
        )

    def _class(
        self, node: Node, *, decorators: Tuple[str, ...], outer: Optional[Node] = None
    ) -> ClassDescriptor:
        name = node_text(node.child_by_field_name("name"), self.source)
        bases: List[str] = []
        abstract = False
        superclasses = node.child_by_field_name("superclasses")
        if superclasses is not None:
            for child in superclasses.named_children:
                if child.type in {"identifier", "attribute", "subscript"}:
                    bases.append(compact_text(child, self.source))
                elif child.type == "keyword_argument" and "ABCMeta" in node_text(child, self.source):
                    abstract = True

        methods: List[FunctionSignature] = []
        fields: Dict[str, FieldDescriptor] = {}
        body = node.child_by_field_name("body")
        for child in body.named_children if body is not None else ():
            if child.type == "function_definition":
                methods.append(self._function(child, decorators=(), in_class=True))
            elif child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is not None and definition.type == "function_definition":
                    method = self._function(
                        definition,
                        decorators=self._decorators(child),
                        outer=child,
                        in_class=True,
                    )
                    methods.append(method)
                    self._routes_from_decorators(child, method.name, prefix="")
            elif child.type in _ASSIGNMENT_STATEMENTS:
                for target, line in _assignment_targets(child, self.source):
                    fields.setdefault(
                        target,
                        FieldDescriptor(
                            name=target,
                            line=line,
                            is_static=True,
                            visibility=visibility_for_name(target),
                        ),
                    )

        for method_node in _method_bodies(body):
            for attribute, line, owner in _self_assignments(method_node, self.source):
                fields.setdefault(
                    attribute,
                    FieldDescriptor(
                        name=attribute,
                        line=line,
                        is_static=owner == "cls",
                        visibility=visibility_for_name(attribute),
                    ),
                )

        return ClassDescriptor(
            name=name,
            superclass=bases[0] if bases else None,
            methods=tuple(methods),
            span=span_of(outer or node),
            bases=tuple(bases),
            fields=tuple(sorted(fields.values(), key=lambda item: (item.line, item.name))),
            decorators=decorators,
            is_exported=self._is_public(name),
            is_abstract=abstract
            or any(last_segment(base.split("[", 1)[0]) in _ABSTRACT_BASES for base in bases)
            or any("abstractmethod" in decorator for method in methods for decorator in method.decorators),
        )

    def _decorators(self, node: Node) -> Tuple[str, ...]:
        decorators: List[str] = []
        for child in node.children:
            if child.type == "decorator":
                decorators.append(compact_text(child, self.source).lstrip("@").strip())
        return tuple(decorators)

    # ------------------------------------------------------------------
    # Routes

    def _routes_from_decorators(self, node: Node, handler: str, *, prefix: str) -> None:
        for child in node.children:
            if child.type != "decorator":
                continue
            call = next((item for item in child.named_children if item.type == "call"), None)
            if call is None:
                continue
            function = call.child_by_field_name("function")
            if function is None or function.type != "attribute":
                continue
            attribute = node_text(function.child_by_field_name("attribute"), self.source)
            arguments = call.child_by_field_name("arguments")
            route = _first_string_argument(arguments, self.source)
            if route is None:
                continue
            if attribute in HTTP_VERBS:
                method = attribute.upper()
                framework = "Flask" if "flask" in self.imported_frameworks and "fastapi" not in self.imported_frameworks else "FastAPI"
            elif attribute == "route":
                method = _flask_methods(arguments, self.source)
                framework = "Flask"
            elif attribute == "api_route":
                method = _flask_methods(arguments, self.source)
                framework = "FastAPI"
            else:
                continue
            self.routes.append(
                RouteRegistration(
                    framework=framework,
                    method=method,
                    route=normalize_route(prefix + route),
                    span=span_of(child),
                    handler=handler or None,
                )
            )

    # ------------------------------------------------------------------
    # Exports

    def _is_public(self, name: str) -> bool:
        if self.public_names is not None:
            return name in self.public_names[0]
        return bool(name) and not name.startswith("_")

    def exports(self) -> Tuple[ExportSpec, ...]:
        if self.public_names is not None:
            names, (start, end) = self.public_names
            span = SourceSpan(start_line=start, end_line=end)
            return tuple(ExportSpec(name=name, span=span) for name in names)
        exports: List[ExportSpec] = []
        for function in self.functions:
            if function.is_exported:
                exports.append(ExportSpec(name=function.name, span=function.span))
        for klass in self.classes:
            if klass.is_exported:
                exports.append(ExportSpec(name=klass.name, span=klass.span))
        exports.sort(key=lambda item: (item.span.start_line, item.name))
        return tuple(exports)


def _top_level_statements(root: Node) -> List[Node]:
    """Module statements, flattening module-level if/try/with blocks."""
    statements: List[Node] = []
    stack: List[Node] = list(reversed(root.named_children))
    while stack:
        node = stack.pop()
        statements.append(node)
        if node.type in _COMPOUND_BLOCKS:
            stack.extend(
                reversed([child for child in node.named_children if child.type not in {"comment"}])
            )
    return statements


def _parameters(node: Optional[Node], source: bytes) -> Tuple[str, ...]:
    if node is None:
        return ()
    names: List[str] = []
    for child in node.named_children:
        if child.type in {"identifier", "list_splat_pattern", "dictionary_splat_pattern", "tuple_pattern"}:
            names.append(node_text(child, source))
        elif child.type in {"default_parameter", "typed_default_parameter"}:
            names.append(node_text(child.child_by_field_name("name"), source))
        elif child.type == "typed_parameter":
            target = next(
                (
                    item
                    for item in child.named_children
                    if item.type in {"identifier", "list_splat_pattern", "dictionary_splat_pattern"}
                ),
                None,
            )
            if target is not None:
                names.append(node_text(target, source))
    return tuple(names)


def _instantiations(body: Optional[Node], source: bytes) -> Tuple[str, ...]:
    if body is None:
        return ()
    names: List[str] = []
    for node in iter_descendants(body, stop=_NESTED_SCOPES):
        if node.type != "call":
            continue
        function = node.child_by_field_name("function")
        if function is None or function.type not in {"identifier", "attribute"}:
            continue
        name = last_segment(node_text(function, source))
        if name[:1].isupper() and not name.isupper() and not name.endswith(_EXCEPTION_SUFFIXES):
            names.append(name)
    return unique(names)


def _assignments(statement: Node) -> List[Node]:
    """Assignment nodes of a statement, bare or wrapped in ``expression_statement``."""
    if statement.type == "assignment":
        return [statement]
    if statement.type == "expression_statement":
        return [child for child in statement.named_children if child.type == "assignment"]
    return []


def _assignment_targets(statement: Node, source: bytes) -> List[Tuple[str, int]]:
    targets: List[Tuple[str, int]] = []
    for child in _assignments(statement):
        left = child.child_by_field_name("left")
        if left is not None and left.type == "identifier":
            targets.append((node_text(left, source), left.start_point[0] + 1))
    return targets


def _method_bodies(body: Optional[Node]) -> List[Node]:
    if body is None:
        return []
    bodies: List[Node] = []
    for child in body.named_children:
        definition = child
        if child.type == "decorated_definition":
            definition = child.child_by_field_name("definition") or child
        if definition.type != "function_definition":
            continue
        block = definition.child_by_field_name("body")
        if block is not None:
            bodies.append(block)
    return bodies


def _self_assignments(block: Node, source: bytes) -> List[Tuple[str, int, str]]:
    attributes: List[Tuple[str, int, str]] = []
    for node in iter_descendants(block, stop=_NESTED_SCOPES):
        if node.type not in {"assignment", "augmented_assignment"}:
            continue
        left = node.child_by_field_name("left")
        if left is None or left.type != "attribute":
            continue
        owner = left.child_by_field_name("object")
        owner_name = node_text(owner, source)
        if owner_name in {"self", "cls"}:
            attribute = node_text(left.child_by_field_name("attribute"), source)
            attributes.append((attribute, left.start_point[0] + 1, owner_name))
    return attributes


def _first_string_argument(arguments: Optional[Node], source: bytes) -> Optional[str]:
    if arguments is None:
        return None
    for child in arguments.named_children:
        if child.type == "keyword_argument":
            continue
        return string_value(child, source)
    return None


def _flask_methods(arguments: Optional[Node], source: bytes) -> str:
    if arguments is None:
        return "GET"
    for child in arguments.named_children:
        if child.type != "keyword_argument":
            continue
        if node_text(child.child_by_field_name("name"), source) != "methods":
            continue
        value = child.child_by_field_name("value")
        verbs = [
            (string_value(item, source) or "").upper()
            for item in (value.named_children if value is not None else ())
        ]
        verbs = [verb for verb in verbs if verb]
        if verbs:
            return "|".join(verbs)
    return "GET"


def _dunder_all(root: Node, source: bytes) -> Optional[Tuple[Tuple[str, ...], Tuple[int, int]]]:
    for statement in root.named_children:
        for child in _assignments(statement):
            left = child.child_by_field_name("left")
            right = child.child_by_field_name("right")
            if node_text(left, source) != "__all__" or right is None:
                continue
            if right.type not in {"list", "tuple"}:
                continue
            names = [string_value(item, source) for item in right.named_children]
            span = span_of(child)
            return unique([name for name in names if name]), (span.start_line, span.end_line)
    return None


def _imported_frameworks(imports: Tuple[ImportEdgeSpec, ...]) -> Set[str]:
    frameworks: Set[str] = set()
    for spec in imports:
        top = spec.target.lstrip(".").split(".", 1)[0]
        if top in {"flask", "fastapi"}:
            frameworks.add(top)
    return frameworks


def _collect_imports(root: Node, source: bytes) -> List[ImportEdgeSpec]:
    imports: List[ImportEdgeSpec] = []
    for node in iter_descendants(root):
        if node.type == "import_statement":
            for name in node.children_by_field_name("name"):
                target = name.child_by_field_name("name") if name.type == "aliased_import" else name
                imports.append(
                    ImportEdgeSpec(target=node_text(target, source), symbols=(), span=span_of(node))
                )
        elif node.type == "import_from_statement":
            module = node.child_by_field_name("module_name")
            symbols: List[str] = []
            for name in node.children_by_field_name("name"):
                target = name.child_by_field_name("name") if name.type == "aliased_import" else name
                symbols.append(node_text(target, source))
            if any(child.type == "wildcard_import" for child in node.named_children):
                symbols.append("*")
            imports.append(
                ImportEdgeSpec(
                    target=node_text(module, source).replace(" ", ""),
                    symbols=tuple(symbols),
                    span=span_of(node),
                )
            )
    return imports


__all__ = ["PythonNormalizer"]

"""Normalizer for the JavaScript/TypeScript grammar family."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import List, Optional, Sequence, Set, Tuple

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
)
from ..parsing import ParsedSource
from .base import (
    HTTP_VERBS,
    compact_text,
    iter_descendants,
    join_routes,
    last_segment,
    node_text,
    normalize_route,
    span_of,
    string_value,
    unique,
    visibility_for_name,
)

_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration", "function_signature"}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_VARIABLE_DECLARATIONS = {"lexical_declaration", "variable_declaration"}
_TYPE_DECLARATIONS = {"interface_declaration", "type_alias_declaration", "enum_declaration"}
_METHOD_MEMBERS = {"method_definition", "method_signature", "abstract_method_signature"}
_FIELD_MEMBERS = {"field_definition", "public_field_definition"}
_NESTED_SCOPES = (
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "arrow_function",
    "class_declaration",
    "class",
)
_ROUTE_METHODS = HTTP_VERBS | {"all"}
_NEST_ROUTE = re.compile(r"^(Get|Post|Put|Delete|Patch|Options|Head|All)\(\s*(?:(['\"`])(.*?)\2)?")
_NEST_CONTROLLER = re.compile(r"^Controller\(\s*(?:(['\"`])(.*?)\1)?")
_ROUTER_FRAMEWORKS = (
    ("@koa/router", "Koa"),
    ("koa-router", "Koa"),
    ("fastify", "Fastify"),
    ("hono", "Hono"),
)


class JavaScriptNormalizer:
    """Builds module descriptors from tree-sitter JavaScript, TypeScript and TSX trees."""

    language = Language.JS_LIKE

    def normalize(self, path: str, parsed: ParsedSource) -> ModuleDescriptor:
        state = _ModuleState(parsed.source)
        for node in parsed.root.named_children:
            state.visit(node)
        state.collect_dependencies(parsed.root)
        return ModuleDescriptor(
            path=path,
            language=self.language,
            grammar=parsed.grammar,
            functions=state.exported_functions(),
            classes=state.exported_classes(),
            imports=tuple(state.imports),
            exports=tuple(state.exports),
            routes=tuple(sorted(state.routes, key=lambda item: (item.span.start_line, item.span.end_line))),
            has_main_guard=False,
        )


class _ModuleState:
    def __init__(self, source: bytes) -> None:
        self.source = source
        self.functions: List[FunctionSignature] = []
        self.classes: List[ClassDescriptor] = []
        self.imports: List[ImportEdgeSpec] = []
        self.exports: List[ExportSpec] = []
        self.routes: List[RouteRegistration] = []
        self.exported_locals: Set[str] = set()

    # ------------------------------------------------------------------
    # Top-level statements

    def visit(self, node: Node) -> None:
        if node.type == "export_statement":
            self._export_statement(node)
        elif node.type in _FUNCTION_DECLARATIONS:
            self.functions.append(self._function(node, self._name(node), outer=node))
        elif node.type in _CLASS_DECLARATIONS:
            self.classes.append(self._class(node, self._name(node), outer=node))
        elif node.type in _VARIABLE_DECLARATIONS:
            self._variables(node, exported=False)
        elif node.type == "expression_statement":
            self._commonjs_export(node)

    def _export_statement(self, node: Node) -> None:
        is_default = any(child.type == "default" for child in node.children)
        decorators = _decorators(node, self.source)
        declaration = node.child_by_field_name("declaration")
        source_node = node.child_by_field_name("source")
        value = node.child_by_field_name("value")
        clause = next((child for child in node.named_children if child.type == "export_clause"), None)
        span = span_of(node)

        if declaration is not None:
            for name in self._declaration(declaration, outer=node, decorators=decorators):
                self.exports.append(
                    ExportSpec(name="default" if is_default else name, span=span, is_default=is_default)
                )
        elif source_node is not None:
            specifier = string_value(source_node, self.source) or ""
            if clause is not None:
                for exported, _local in _export_specifiers(clause, self.source):
                    self.exports.append(ExportSpec(name=exported, span=span, source=specifier))
            else:
                namespace = next(
                    (child for child in node.named_children if child.type == "namespace_export"), None
                )
                name = node_text(namespace.named_children[-1], self.source) if namespace is not None and namespace.named_children else "*"
                self.exports.append(ExportSpec(name=name, span=span, source=specifier))
        elif clause is not None:
            for exported, local in _export_specifiers(clause, self.source):
                self.exported_locals.add(local)
                self.exports.append(ExportSpec(name=exported, span=span, is_default=exported == "default"))
        elif value is not None:
            if value.type == "identifier":
                self.exported_locals.add(node_text(value, self.source))
            elif value.type in _FUNCTION_VALUES:
                name = node_text(value.child_by_field_name("name"), self.source)
                self.functions.append(self._function(value, name, outer=node, exported=True))
            elif value.type == "class":
                name = node_text(value.child_by_field_name("name"), self.source)
                self.classes.append(
                    self._class(value, name, outer=node, exported=True, decorators=decorators)
                )
            self.exports.append(ExportSpec(name="default", span=span, is_default=True))

    def _declaration(self, node: Node, *, outer: Node, decorators: Tuple[str, ...]) -> List[str]:
        if node.type in _FUNCTION_DECLARATIONS:
            function = self._function(node, self._name(node), outer=outer, exported=True)
            self.functions.append(function)
            return [function.name]
        if node.type in _CLASS_DECLARATIONS:
            klass = self._class(node, self._name(node), outer=outer, exported=True, decorators=decorators)
            self.classes.append(klass)
            return [klass.name]
        if node.type in _VARIABLE_DECLARATIONS:
            return self._variables(node, exported=True, outer=outer)
        if node.type in _TYPE_DECLARATIONS:
            return [self._name(node)]
        return []

    def _variables(self, node: Node, *, exported: bool, outer: Optional[Node] = None) -> List[str]:
        names: List[str] = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            name = node_text(name_node, self.source)
            value = declarator.child_by_field_name("value")
            if name_node is not None and name_node.type == "identifier":
                names.append(name)
            if value is None:
                continue
            if value.type in _FUNCTION_VALUES:
                self.functions.append(self._function(value, name, outer=outer or node, exported=exported))
            elif value.type == "class":
                self.classes.append(self._class(value, name, outer=outer or node, exported=exported))
        return names

    def _commonjs_export(self, statement: Node) -> None:
        expression = next(iter(statement.named_children), None)
        if expression is None or expression.type != "assignment_expression":
            return
        left = compact_text(expression.child_by_field_name("left"), self.source)
        right = expression.child_by_field_name("right")
        if right is None:
            return
        span = span_of(statement)
        if left == "module.exports":
            if right.type == "identifier":
                local = node_text(right, self.source)
                self.exported_locals.add(local)
                self.exports.append(ExportSpec(name=local, span=span, is_default=True))
            elif right.type == "object":
                for exported, local in _object_members(right, self.source):
                    if local:
                        self.exported_locals.add(local)
                    self.exports.append(ExportSpec(name=exported, span=span))
            elif right.type in _FUNCTION_VALUES:
                name = node_text(right.child_by_field_name("name"), self.source)
                self.functions.append(self._function(right, name, outer=statement, exported=True))
                self.exports.append(ExportSpec(name="default", span=span, is_default=True))
            elif right.type == "class":
                name = node_text(right.child_by_field_name("name"), self.source)
                self.classes.append(self._class(right, name, outer=statement, exported=True))
                self.exports.append(ExportSpec(name="default", span=span, is_default=True))
            else:
                self.exports.append(ExportSpec(name="default", span=span, is_default=True))
        elif left.startswith(("module.exports.", "exports.")):
            exported = last_segment(left)
            if right.type in _FUNCTION_VALUES:
                self.functions.append(self._function(right, exported, outer=statement, exported=True))
            elif right.type == "identifier":
                self.exported_locals.add(node_text(right, self.source))
            self.exports.append(ExportSpec(name=exported, span=span))

    # ------------------------------------------------------------------
    # Definitions

    def _name(self, node: Node) -> str:
        return node_text(node.child_by_field_name("name"), self.source)

    def _function(
        self,
        node: Node,
        name: str,
        *,
        outer: Node,
        exported: bool = False,
        decorators: Tuple[str, ...] = (),
        is_static: bool = False,
        visibility: Optional[str] = None,
    ) -> FunctionSignature:
        parameters = node.child_by_field_name("parameters") or node.child_by_field_name("parameter")
        return_type = node.child_by_field_name("return_type")
        return FunctionSignature(
            name=name,
            parameters=_parameters(parameters, self.source),
            span=span_of(outer),
            return_type=compact_text(return_type, self.source).lstrip(":").strip() if return_type is not None else None,
            is_async=any(child.type == "async" for child in node.children),
            is_exported=exported,
            is_static=is_static,
            visibility=visibility or visibility_for_name(name),
            decorators=decorators,
            instantiates=_instantiations(node.child_by_field_name("body"), self.source),
        )

    def _class(
        self,
        node: Node,
        name: str,
        *,
        outer: Node,
        exported: bool = False,
        decorators: Tuple[str, ...] = (),
    ) -> ClassDescriptor:
        decorators = decorators + _decorators(node, self.source)
        bases = _heritage(node, self.source)
        prefix = _controller_prefix(decorators)
        methods: List[FunctionSignature] = []
        fields: List[FieldDescriptor] = []
        pending: List[str] = []

        body = node.child_by_field_name("body")
        for member in body.named_children if body is not None else ():
            if member.type == "decorator":
                pending.append(compact_text(member, self.source).lstrip("@").strip())
                continue
            if member.type in _METHOD_MEMBERS:
                member_decorators = tuple(pending) + _decorators(member, self.source)
                method_name = node_text(member.child_by_field_name("name"), self.source)
                modifiers = _modifiers(member, self.source)
                method = self._function(
                    member,
                    method_name,
                    outer=member,
                    decorators=member_decorators,
                    is_static="static" in modifiers,
                    visibility=_visibility(modifiers, method_name),
                )
                methods.append(method)
                if method_name == "constructor":
                    fields.extend(_parameter_properties(member, self.source))
                if prefix is not None:
                    self._nest_routes(member_decorators, prefix, method)
            elif member.type in _FIELD_MEMBERS:
                name_node = member.child_by_field_name("property") or member.child_by_field_name("name")
                field_name = node_text(name_node, self.source)
                modifiers = _modifiers(member, self.source)
                fields.append(
                    FieldDescriptor(
                        name=field_name,
                        line=member.start_point[0] + 1,
                        is_static="static" in modifiers,
                        visibility=_visibility(modifiers, field_name),
                    )
                )
            pending = []

        return ClassDescriptor(
            name=name,
            superclass=bases[0] if bases else None,
            methods=tuple(methods),
            span=span_of(outer),
            bases=bases,
            fields=tuple(sorted(fields, key=lambda item: (item.line, item.name))),
            decorators=decorators,
            is_exported=exported,
            is_abstract=node.type == "abstract_class_declaration",
        )

    def _nest_routes(self, decorators: Sequence[str], prefix: str, method: FunctionSignature) -> None:
        for decorator in decorators:
            match = _NEST_ROUTE.match(decorator)
            if match is None:
                continue
            self.routes.append(
                RouteRegistration(
                    framework="NestJS",
                    method=match.group(1).upper(),
                    route=join_routes(prefix, match.group(3) or "/"),
                    span=method.span,
                    handler=method.name or None,
                )
            )

    # ------------------------------------------------------------------
    # Whole-tree facts

    def collect_dependencies(self, root: Node) -> None:
        route_calls: List[Node] = []
        for node in iter_descendants(root):
            if node.type == "import_statement":
                self.imports.append(self._import_statement(node))
            elif node.type == "export_statement":
                source_node = node.child_by_field_name("source")
                if source_node is not None:
                    clause = next((c for c in node.named_children if c.type == "export_clause"), None)
                    symbols = tuple(local for _, local in _export_specifiers(clause, self.source)) if clause is not None else ()
                    self.imports.append(
                        ImportEdgeSpec(
                            target=string_value(source_node, self.source) or "",
                            symbols=symbols,
                            span=span_of(node),
                            is_reexport=True,
                        )
                    )
            elif node.type == "call_expression":
                spec = self._require(node)
                if spec is not None:
                    self.imports.append(spec)
                    continue
                route_calls.append(node)
        framework = _router_framework(self.imports)
        for node in route_calls:
            route = self._route_call(node, framework)
            if route is not None:
                self.routes.append(route)

    def _import_statement(self, node: Node) -> ImportEdgeSpec:
        target = string_value(node.child_by_field_name("source"), self.source) or ""
        symbols: List[str] = []
        clause = next((child for child in node.named_children if child.type == "import_clause"), None)
        for child in clause.named_children if clause is not None else ():
            if child.type == "identifier":
                symbols.append("default")
            elif child.type == "named_imports":
                for specifier in child.named_children:
                    if specifier.type == "import_specifier":
                        symbols.append(node_text(specifier.child_by_field_name("name"), self.source))
        namespace = clause is not None and any(child.type == "namespace_import" for child in clause.named_children)
        return ImportEdgeSpec(
            target=target,
            symbols=() if namespace else tuple(symbols),
            span=span_of(node),
        )

    def _require(self, node: Node) -> Optional[ImportEdgeSpec]:
        function = node.child_by_field_name("function")
        if function is None:
            return None
        is_require = function.type == "identifier" and node_text(function, self.source) == "require"
        if not is_require and function.type != "import":
            return None
        arguments = node.child_by_field_name("arguments")
        literal = arguments.named_children[0] if arguments is not None and arguments.named_children else None
        target = string_value(literal, self.source)
        if target is None:
            return None
        symbols: Tuple[str, ...] = ()
        parent = node.parent
        if parent is not None and parent.type == "variable_declarator":
            pattern = parent.child_by_field_name("name")
            if pattern is not None and pattern.type == "object_pattern":
                symbols = _pattern_names(pattern, self.source)
        elif parent is not None and parent.type == "member_expression":
            symbols = (node_text(parent.child_by_field_name("property"), self.source),)
        return ImportEdgeSpec(target=target, symbols=symbols, span=span_of(node))

    def _route_call(self, node: Node, framework: str) -> Optional[RouteRegistration]:
        function = node.child_by_field_name("function")
        if function is None or function.type != "member_expression":
            return None
        verb = node_text(function.child_by_field_name("property"), self.source)
        if verb not in _ROUTE_METHODS:
            return None
        arguments = node.child_by_field_name("arguments")
        values = [child for child in (arguments.named_children if arguments is not None else ()) if child.type != "comment"]
        if len(values) < 2:
            return None
        route = string_value(values[0], self.source)
        if route is None or not (route.startswith("/") or route == "*"):
            return None
        handler_node = values[-1]
        handler = None
        if handler_node.type in {"identifier", "member_expression"}:
            handler = compact_text(handler_node, self.source)
        return RouteRegistration(
            framework=framework,
            method=verb.upper() if verb != "all" else "ALL",
            route=normalize_route(route),
            span=span_of(node),
            handler=handler,
        )

    # ------------------------------------------------------------------
    # Export marking

    def exported_functions(self) -> Tuple[FunctionSignature, ...]:
        return tuple(
            replace(item, is_exported=True) if item.name and item.name in self.exported_locals else item
            for item in self.functions
        )

    def exported_classes(self) -> Tuple[ClassDescriptor, ...]:
        return tuple(
            replace(item, is_exported=True) if item.name and item.name in self.exported_locals else item
            for item in self.classes
        )


def _decorators(node: Node, source: bytes) -> Tuple[str, ...]:
    return tuple(
        compact_text(child, source).lstrip("@").strip()
        for child in node.children
        if child.type == "decorator"
    )


def _modifiers(member: Node, source: bytes) -> Set[str]:
    modifiers: Set[str] = set()
    for child in member.children:
        if child.type in {"static", "async", "get", "set", "readonly", "override", "abstract"}:
            modifiers.add(child.type)
        elif child.type == "accessibility_modifier":
            modifiers.add(node_text(child, source).strip())
    return modifiers


def _visibility(modifiers: Set[str], name: str) -> str:
    for level in ("private", "protected", "public"):
        if level in modifiers:
            return level
    return visibility_for_name(name)


def _heritage(node: Node, source: bytes) -> Tuple[str, ...]:
    bases: List[str] = []
    for child in node.named_children:
        if child.type != "class_heritage":
            continue
        for clause in child.named_children:
            if clause.type == "extends_clause":
                value = clause.child_by_field_name("value")
                targets = [value] if value is not None else clause.named_children[:1]
                bases.extend(compact_text(target, source) for target in targets)
            elif clause.type == "implements_clause":
                bases.extend(compact_text(target, source) for target in clause.named_children)
            elif clause.type != "comment":
                bases.append(compact_text(clause, source))
    return unique(bases)


def _controller_prefix(decorators: Sequence[str]) -> Optional[str]:
    for decorator in decorators:
        match = _NEST_CONTROLLER.match(decorator)
        if match is not None:
            return match.group(2) or ""
    return None


def _parameters(node: Optional[Node], source: bytes) -> Tuple[str, ...]:
    if node is None:
        return ()
    if node.type == "identifier":
        return (node_text(node, source),)
    names: List[str] = []
    for child in node.named_children:
        if child.type == "comment":
            continue
        if child.type == "assignment_pattern":
            names.append(compact_text(child.child_by_field_name("left"), source))
        elif child.type in {"required_parameter", "optional_parameter"}:
            pattern = child.child_by_field_name("pattern")
            names.append(compact_text(pattern, source) if pattern is not None else compact_text(child, source))
        else:
            names.append(compact_text(child, source))
    return tuple(names)


def _parameter_properties(constructor: Node, source: bytes) -> List[FieldDescriptor]:
    fields: List[FieldDescriptor] = []
    parameters = constructor.child_by_field_name("parameters")
    for child in parameters.named_children if parameters is not None else ():
        if child.type not in {"required_parameter", "optional_parameter"}:
            continue
        modifiers = _modifiers(child, source)
        if not modifiers & {"private", "protected", "public", "readonly"}:
            continue
        name = compact_text(child.child_by_field_name("pattern"), source)
        fields.append(
            FieldDescriptor(
                name=name,
                line=child.start_point[0] + 1,
                visibility=_visibility(modifiers, name),
            )
        )
    return fields


def _instantiations(body: Optional[Node], source: bytes) -> Tuple[str, ...]:
    if body is None:
        return ()
    names: List[str] = []
    for node in iter_descendants(body, stop=_NESTED_SCOPES):
        if node.type != "new_expression":
            continue
        constructor = node.child_by_field_name("constructor")
        if constructor is not None and constructor.type in {"identifier", "member_expression"}:
            names.append(last_segment(node_text(constructor, source)))
    return unique(names)


def _export_specifiers(clause: Node, source: bytes) -> List[Tuple[str, str]]:
    specifiers: List[Tuple[str, str]] = []
    for child in clause.named_children:
        if child.type != "export_specifier":
            continue
        local = node_text(child.child_by_field_name("name"), source)
        alias = child.child_by_field_name("alias")
        specifiers.append((node_text(alias, source) if alias is not None else local, local))
    return specifiers


def _object_members(node: Node, source: bytes) -> List[Tuple[str, str]]:
    members: List[Tuple[str, str]] = []
    for child in node.named_children:
        if child.type == "shorthand_property_identifier":
            name = node_text(child, source)
            members.append((name, name))
        elif child.type == "pair":
            key = string_value(child.child_by_field_name("key"), source) or node_text(
                child.child_by_field_name("key"), source
            )
            value = child.child_by_field_name("value")
            local = node_text(value, source) if value is not None and value.type == "identifier" else ""
            members.append((key, local))
        elif child.type == "method_definition":
            name = node_text(child.child_by_field_name("name"), source)
            members.append((name, ""))
    return members


def _pattern_names(pattern: Node, source: bytes) -> Tuple[str, ...]:
    names: List[str] = []
    for child in pattern.named_children:
        if child.type == "shorthand_property_identifier_pattern":
            names.append(node_text(child, source))
        elif child.type == "pair_pattern":
            names.append(node_text(child.child_by_field_name("key"), source))
        elif child.type == "object_assignment_pattern":
            names.append(node_text(child.child_by_field_name("left"), source))
    return tuple(names)


def _router_framework(imports: Sequence[ImportEdgeSpec]) -> str:
    targets = {spec.target for spec in imports}
    for package, framework in _ROUTER_FRAMEWORKS:
        if package in targets:
            return framework
    return "Express"


__all__ = ["JavaScriptNormalizer"]

"""Framework usage rules: HTTP routing, React components and data models."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Tuple

from ..models import ClassDescriptor, Concept, ConceptKind, Language, ModuleDescriptor, RouteRegistration, SourceSpan
from ..normalizers.base import last_segment
from .base import Rule, RuleContext

_ROUTING_PACKAGES: Dict[str, Tuple[str, ...]] = {
    "FastAPI": ("fastapi",),
    "Flask": ("flask",),
    "Express": ("express",),
    "Koa": ("koa", "@koa/router", "koa-router"),
    "Fastify": ("fastify",),
    "Hono": ("hono",),
    "NestJS": ("@nestjs/common", "@nestjs/core"),
}

_REACT_PACKAGES = ("react", "preact")
_COMPONENT_BASES = {"Component", "PureComponent"}
_PASCAL_CASE = re.compile(r"^[A-Z][A-Za-z0-9]*$")

_MODEL_BASES = {"BaseModel", "Model", "Base", "DeclarativeBase", "SQLModel", "Document", "Schema", "BaseEntity"}
_MODEL_DECORATORS = {"dataclass", "Entity", "Schema", "define", "attr.s", "attrs.define", "model"}
_MODEL_PACKAGES = (
    "pydantic",
    "django",
    "sqlalchemy",
    "sqlmodel",
    "mongoengine",
    "typeorm",
    "sequelize",
    "mongoose",
    "@nestjs/mongoose",
    "@mikro-orm/core",
)


# ----------------------------------------------------------------------
# HTTP routing


class HttpRoutingRule(Rule):
    """Route registrations, grouped per module and framework."""

    name = "http_routing"
    kind = ConceptKind.FRAMEWORK_PATTERN
    label = "HTTP Routing"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            groups: Dict[str, List[RouteRegistration]] = {}
            for route in module.routes:
                groups.setdefault(route.framework, []).append(route)
            imported = {spec.target.split(".", 1)[0] for spec in module.imports}
            imported.update(spec.target for spec in module.imports)
            for framework, routes in groups.items():
                packages = _ROUTING_PACKAGES.get(framework, (framework.lower(),))
                conditions = {
                    "route_registrations": True,
                    "framework_declared": context.has_framework(framework, *packages),
                    "framework_imported": any(package in imported for package in packages),
                    "named_handlers": all(route.handler for route in routes),
                }
                span = SourceSpan(
                    start_line=min(route.span.start_line for route in routes),
                    end_line=max(route.span.end_line for route in routes),
                )
                yield self.concept(
                    module.path,
                    span,
                    conditions,
                    framework=framework,
                    routes=len(routes),
                    methods=",".join(sorted({route.method for route in routes})),
                )


# ----------------------------------------------------------------------
# React components


class ReactComponentRule(Rule):
    name = "react_component"
    kind = ConceptKind.FRAMEWORK_PATTERN
    label = "React Component"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            if module.language is not Language.JS_LIKE:
                continue
            react_imported = any(
                spec.target in _REACT_PACKAGES or spec.target.startswith("react/") for spec in module.imports
            )
            jsx_file = module.grammar == "tsx" or module.path.endswith(".jsx")
            found: List[Tuple[int, Concept]] = []

            for function in module.functions:
                if not _PASCAL_CASE.match(function.name) or not (jsx_file or react_imported):
                    continue
                conditions = {
                    "pascal_case_name": True,
                    "jsx_file": jsx_file,
                    "react_imported": react_imported,
                    "exported": function.is_exported,
                }
                concept = self.concept(module.path, function.span, conditions, component=function.name, style="function")
                found.append((function.span.start_line, concept))

            for klass in module.classes:
                if not _extends_component(klass):
                    continue
                conditions = {
                    "extends_component": True,
                    "render_method": klass.method("render") is not None,
                    "react_imported": react_imported,
                    "exported": klass.is_exported,
                }
                concept = self.concept(module.path, klass.span, conditions, component=klass.name, style="class")
                found.append((klass.span.start_line, concept))

            for _, concept in sorted(found, key=lambda item: item[0]):
                yield concept


def _extends_component(klass: ClassDescriptor) -> bool:
    return klass.superclass is not None and last_segment(klass.superclass.split("<", 1)[0]) in _COMPONENT_BASES


# ----------------------------------------------------------------------
# Data models


class DataModelRule(Rule):
    """ORM entities, validation models and plain data classes."""

    name = "data_model"
    kind = ConceptKind.FRAMEWORK_PATTERN
    label = "Data Model"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        declared = context.has_framework(*_MODEL_PACKAGES)
        for module in context.modules:
            for klass in module.classes:
                marker = _model_marker(klass)
                if marker is None:
                    continue
                behaviours = [
                    method
                    for method in klass.methods
                    if not (method.name.startswith("__") and method.name.endswith("__"))
                    and method.name != "constructor"
                ]
                conditions = {
                    "model_marker": True,
                    "has_fields": bool(klass.fields),
                    "framework_declared": declared or _imports_model_package(module),
                    "data_dominant": len(behaviours) <= len(klass.fields),
                }
                yield self.concept(
                    module.path,
                    klass.span,
                    conditions,
                    **{"class": klass.name, "marker": marker, "fields": len(klass.fields)},
                )


def _model_marker(klass: ClassDescriptor) -> str | None:
    for base in klass.bases:
        name = last_segment(base.split("[", 1)[0].split("<", 1)[0].strip())
        if name in _MODEL_BASES:
            return base
    for decorator in klass.decorators:
        name = decorator.split("(", 1)[0].strip()
        if name in _MODEL_DECORATORS or last_segment(name) in _MODEL_DECORATORS:
            return decorator.split("(", 1)[0]
    return None


def _imports_model_package(module: ModuleDescriptor) -> bool:
    for spec in module.imports:
        top = spec.target.split(".", 1)[0] if module.language is Language.PY_LIKE else spec.target
        if top in _MODEL_PACKAGES:
            return True
    return False


__all__ = ["DataModelRule", "HttpRoutingRule", "ReactComponentRule"]

"""Design pattern rules evaluated per class or function."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Sequence, Tuple

from ..models import (
    ClassDescriptor,
    Concept,
    ConceptKind,
    EvidenceValue,
    FunctionSignature,
    ModuleDescriptor,
)
from ..normalizers.base import last_segment
from .base import Rule, RuleContext

_CONSTRUCTORS = {"constructor", "__init__"}
_ACCESSOR = re.compile(r"^_*(get_?)?(instance|shared(_?instance)?|default(_?instance)?|current)$", re.IGNORECASE)
_INSTANCE_FIELD = re.compile(r"^[_#]*(instance|shared(_?instance)?|singleton|default(_?instance)?)$", re.IGNORECASE)

_SUBSCRIBE = re.compile(
    r"^(subscribe|attach|register|on|add_?(event_?)?(listener|observer|subscriber|handler|callback))$",
    re.IGNORECASE,
)
_NOTIFY = re.compile(r"^_*(notify|emit|publish|dispatch|trigger|fire|broadcast)", re.IGNORECASE)
_UNSUBSCRIBE = re.compile(
    r"^(unsubscribe|detach|unregister|off|remove_?(event_?)?(listener|observer|subscriber|handler|callback))$",
    re.IGNORECASE,
)
_LISTENER_FIELD = re.compile(r"(listeners|observers|subscribers|handlers|callbacks)$", re.IGNORECASE)

_FACTORY_PREFIX = re.compile(r"^_*(create|make|new)([A-Z_]|$)")

_BUILD_METHOD = re.compile(r"^(build|build_\w+|to_?[A-Z]\w*)$")
_FLUENT_SETTER = re.compile(r"^(with|set|add)([A-Z_])")


def _is_constructor(method: FunctionSignature) -> bool:
    return method.name in _CONSTRUCTORS


def _is_factory_name(name: str) -> bool:
    return bool(_FACTORY_PREFIX.match(name)) or "factory" in name.lower()


# ----------------------------------------------------------------------
# Singleton


class SingletonRule(Rule):
    """Restricted construction plus a static accessor and a stored instance."""

    name = "singleton"
    kind = ConceptKind.DESIGN_PATTERN
    label = "Singleton"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            for klass in module.classes:
                constructor = klass.method("constructor") or klass.method("__init__")
                conditions = {
                    "private_constructor": (
                        constructor is not None and constructor.visibility == "private"
                    )
                    or klass.method("__new__") is not None,
                    "static_accessor": any(
                        method.is_static and _ACCESSOR.match(method.name) for method in klass.methods
                    ),
                    "stored_instance": any(
                        field.is_static and _INSTANCE_FIELD.match(field.name) for field in klass.fields
                    ),
                }
                if sum(conditions.values()) >= 2:
                    yield self.concept(module.path, klass.span, conditions, **{"class": klass.name})


# ----------------------------------------------------------------------
# Observer


class ObserverRule(Rule):
    """Subscribe-style registration next to notification and listener storage.

    Fires once per subscribe-like method, so a class exposing both
    ``subscribe`` and ``addListener`` yields two concepts.
    """

    name = "observer"
    kind = ConceptKind.DESIGN_PATTERN
    label = "Observer"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            for klass in module.classes:
                notify = any(_NOTIFY.match(method.name) for method in klass.methods)
                unsubscribe = any(_UNSUBSCRIBE.match(method.name) for method in klass.methods)
                store = any(_LISTENER_FIELD.search(field.name) for field in klass.fields)
                for method in klass.methods:
                    if not _SUBSCRIBE.match(method.name):
                        continue
                    conditions = {
                        "subscribe_method": True,
                        "notify_method": notify,
                        "unsubscribe_method": unsubscribe,
                        "listener_store": store,
                    }
                    if sum(conditions.values()) < 2:
                        continue
                    yield self.concept(
                        module.path, method.span, conditions, **{"class": klass.name, "method": method.name}
                    )


# ----------------------------------------------------------------------
# Factory


class FactoryRule(Rule):
    name = "factory"
    kind = ConceptKind.DESIGN_PATTERN
    label = "Factory"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            candidates: List[Tuple[FunctionSignature, str, bool]] = [
                (function, "", True) for function in module.functions
            ]
            for klass in module.classes:
                in_factory = "factory" in klass.name.lower()
                for method in klass.methods:
                    if _is_constructor(method):
                        continue
                    candidates.append((method, klass.name, method.is_static or in_factory))
            candidates.sort(key=lambda item: (item[0].span.start_line, item[0].name))

            for function, owner, standalone in candidates:
                if not function.name or not _is_factory_name(function.name):
                    continue
                products = [name for name in function.instantiates if name != owner]
                conditions = {
                    "factory_name": True,
                    "instantiates": bool(products),
                    "multiple_products": len(products) >= 2,
                    "standalone": standalone,
                }
                if not conditions["instantiates"]:
                    continue
                details: Dict[str, EvidenceValue] = {"function": function.name, "products": len(products)}
                if owner:
                    details["class"] = owner
                yield self.concept(module.path, function.span, conditions, **details)


# ----------------------------------------------------------------------
# Builder


class BuilderRule(Rule):
    name = "builder"
    kind = ConceptKind.DESIGN_PATTERN
    label = "Builder"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            for klass in module.classes:
                setters = [method for method in klass.methods if _FLUENT_SETTER.match(method.name)]
                conditions = {
                    "builder_name": klass.name.endswith("Builder"),
                    "build_method": any(_BUILD_METHOD.match(method.name) for method in klass.methods),
                    "fluent_setters": len(setters) >= 2,
                    "accumulates_state": any(not field.is_static for field in klass.fields),
                }
                if not conditions["build_method"]:
                    continue
                if not (conditions["builder_name"] or conditions["fluent_setters"]):
                    continue
                yield self.concept(
                    module.path, klass.span, conditions, **{"class": klass.name, "setters": len(setters)}
                )


# ----------------------------------------------------------------------
# Strategy


class StrategyRule(Rule):
    """A base type with several interchangeable implementations."""

    name = "strategy"
    kind = ConceptKind.DESIGN_PATTERN
    label = "Strategy"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        implementations = _implementations(context.modules)
        for module in context.modules:
            for klass in module.classes:
                subclasses = implementations.get(klass.name, [])
                if len(subclasses) < 2:
                    continue
                shared = _shared_method(klass, subclasses)
                conditions = {
                    "multiple_implementations": True,
                    "shared_interface_method": shared is not None,
                    "abstract_base": klass.is_abstract,
                }
                if shared is None:
                    continue
                yield self.concept(
                    module.path,
                    klass.span,
                    conditions,
                    base=klass.name,
                    implementations=len(subclasses),
                    method=shared,
                )


def _implementations(modules: Sequence[ModuleDescriptor]) -> Dict[str, List[ClassDescriptor]]:
    table: Dict[str, List[ClassDescriptor]] = {}
    for module in modules:
        for klass in module.classes:
            for base in klass.bases:
                name = last_segment(base.split("<", 1)[0].split("[", 1)[0].split("(", 1)[0].strip())
                table.setdefault(name, []).append(klass)
    return table


def _shared_method(base: ClassDescriptor, subclasses: Sequence[ClassDescriptor]) -> str | None:
    """Return the first base-declared (or common) method every subclass defines."""
    names = [method.name for method in base.methods if not _is_constructor(method)]
    if not names:
        first = subclasses[0]
        names = [method.name for method in first.methods if not _is_constructor(method)]
    for name in names:
        if name and all(subclass.method(name) is not None for subclass in subclasses):
            return name
    return None


__all__ = ["BuilderRule", "FactoryRule", "ObserverRule", "SingletonRule", "StrategyRule"]

"""Architectural pattern rules over directory layout and graph shape."""

from __future__ import annotations

import posixpath
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..models import Concept, ConceptKind, ModuleDescriptor
from .base import ROOT_DIRECTORY, Rule, RuleContext

# Layer rank: lower ranks sit closer to the caller.
_LAYERS: Dict[str, Tuple[int, Set[str]]] = {
    "presentation": (0, {"controllers", "controller", "routes", "routers", "api", "views", "handlers", "ui", "pages", "web"}),
    "service": (1, {"services", "service", "usecases", "use_cases", "domain", "application", "logic", "core"}),
    "data": (2, {"repositories", "repository", "models", "dal", "db", "data", "persistence", "dao", "entities", "store"}),
}

_MVC: Dict[str, Set[str]] = {
    "models": {"models", "model", "entities"},
    "views": {"views", "view", "templates", "components", "pages"},
    "controllers": {"controllers", "controller"},
}

_WORKSPACE_CONTAINERS = ("packages", "apps", "services", "libs", "modules")
_PACKAGE_MANIFESTS = ("package.json", "pyproject.toml")
_FACADE_STEMS = {"index", "__init__"}

HUB_MIN_IMPORTERS = 3


def _layer_of(name: str) -> Optional[str]:
    lowered = name.lower()
    for layer, (_, names) in _LAYERS.items():
        if lowered in names:
            return layer
    return None


def _containing(path: str, directories: Dict[str, str]) -> Optional[str]:
    for key, directory in directories.items():
        if path.startswith(f"{directory}/"):
            return key
    return None


# ----------------------------------------------------------------------
# Layered architecture


class LayeredRule(Rule):
    """Sibling directories named for presentation, service and data layers."""

    name = "layered"
    kind = ConceptKind.ARCHITECTURAL_PATTERN
    label = "Layered Architecture"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for directory in context.directories:
            layers: Dict[str, str] = {}
            for child, path in sorted(context.child_directories(directory).items()):
                layer = _layer_of(child)
                if layer is not None:
                    layers.setdefault(layer, path)
            if len(layers) < 2:
                continue

            downward = upward = 0
            for source, target in context.internal_pairs():
                source_layer = _containing(source, layers)
                target_layer = _containing(target, layers)
                if source_layer is None or target_layer is None or source_layer == target_layer:
                    continue
                if _LAYERS[source_layer][0] < _LAYERS[target_layer][0]:
                    downward += 1
                else:
                    upward += 1

            conditions = {
                "presentation_layer": "presentation" in layers,
                "service_layer": "service" in layers,
                "data_layer": "data" in layers,
                "downward_dependencies": downward > 0 and upward == 0,
            }
            yield self.concept(
                directory,
                None,
                conditions,
                layers=",".join(sorted(posixpath.basename(path) for path in layers.values())),
                upward_edges=upward,
            )


# ----------------------------------------------------------------------
# Model-View-Controller


class MvcRule(Rule):
    name = "mvc"
    kind = ConceptKind.ARCHITECTURAL_PATTERN
    label = "MVC"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for directory in context.directories:
            roles: Dict[str, str] = {}
            for child, path in sorted(context.child_directories(directory).items()):
                for role, names in _MVC.items():
                    if child.lower() in names:
                        roles.setdefault(role, path)
            if "controllers" not in roles or len(roles) < 2:
                continue

            controllers_use_models = False
            if "models" in roles:
                for source, target in context.internal_pairs():
                    if source.startswith(f"{roles['controllers']}/") and target.startswith(f"{roles['models']}/"):
                        controllers_use_models = True
                        break

            conditions = {
                "models_dir": "models" in roles,
                "views_dir": "views" in roles,
                "controllers_dir": True,
                "controllers_import_models": controllers_use_models,
            }
            yield self.concept(directory, None, conditions)


# ----------------------------------------------------------------------
# Hub module


class HubModuleRule(Rule):
    """A module many others depend on while it depends on few."""

    name = "hub_module"
    kind = ConceptKind.ARCHITECTURAL_PATTERN
    label = "Hub Module"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            importers = context.importers(module.path)
            if len(importers) < HUB_MIN_IMPORTERS:
                continue
            imported = context.imported(module.path)
            conditions = {
                "high_fan_in": True,
                "fan_in_dominant": len(importers) >= 2 * len(imported),
                "exports_many": len(module.exports) >= 3,
            }
            yield self.concept(
                module.path,
                None,
                conditions,
                fan_in=len(importers),
                fan_out=len(imported),
                depth=context.analysis.depths.get(module.path, 0),
            )


# ----------------------------------------------------------------------
# Facade module


class FacadeModuleRule(Rule):
    """Package index that forwards the public surface of its submodules."""

    name = "facade_module"
    kind = ConceptKind.ARCHITECTURAL_PATTERN
    label = "Facade Module"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for module in context.modules:
            forwarded = _forwarded_targets(context, module)
            if len(forwarded) < 2:
                continue
            directory = posixpath.dirname(module.path)
            outside = [
                importer
                for importer in context.importers(module.path)
                if posixpath.dirname(importer) != directory
            ]
            conditions = {
                "reexports": True,
                "index_filename": module.filename.split(".", 1)[0] in _FACADE_STEMS,
                "no_own_definitions": not module.functions and not module.classes,
                "imported_from_outside": bool(outside),
            }
            yield self.concept(module.path, None, conditions, forwarded=len(forwarded))


def _forwarded_targets(context: RuleContext, module: ModuleDescriptor) -> List[str]:
    index = context.graph.index_of(module.path)
    if index is None:
        return []
    directory = posixpath.dirname(module.path)
    prefix = f"{directory}/" if directory else ""
    is_index = module.filename.split(".", 1)[0] in _FACADE_STEMS
    reexport_lines = {spec.span.start_line for spec in module.imports if spec.is_reexport}

    targets: List[str] = []
    for edge in context.graph.edges_from(index):
        if edge.target is None:
            continue
        target = context.graph.node_id(edge.target)
        if edge.line in reexport_lines or (is_index and target.startswith(prefix)):
            if target not in targets and target != module.path:
                targets.append(target)
    return targets


# ----------------------------------------------------------------------
# Monorepo


class MonorepoRule(Rule):
    """Several sub-projects under workspace container directories."""

    name = "monorepo"
    kind = ConceptKind.ARCHITECTURAL_PATTERN
    label = "Monorepo"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        projects: Dict[str, str] = {}
        for container in _WORKSPACE_CONTAINERS:
            for child, path in context.child_directories(container).items():
                projects.setdefault(path, child)
        nested_manifests = [
            path
            for path in context.manifest.manifests
            if "/" in path and path.rsplit("/", 1)[-1] in _PACKAGE_MANIFESTS
        ]

        crossing = False
        by_directory = {path: path for path in projects}
        for source, target in context.internal_pairs():
            source_project = _containing(source, by_directory)
            target_project = _containing(target, by_directory)
            if source_project and target_project and source_project != target_project:
                crossing = True
                break
        if not crossing:
            names = set(projects.values())
            crossing = any(
                package.rsplit("/", 1)[-1] in names for package in context.manifest.node_packages
            )

        conditions = {
            "workspace_dirs": len(projects) >= 2,
            "multiple_manifests": len(nested_manifests) >= 2,
            "cross_project_dependencies": crossing,
        }
        if sum(conditions.values()) < 2:
            return
        yield self.concept(ROOT_DIRECTORY, None, conditions, projects=len(projects))


__all__ = ["FacadeModuleRule", "HubModuleRule", "LayeredRule", "MonorepoRule", "MvcRule"]

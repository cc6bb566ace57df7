"""Tests for codemodel.graph.builder and codemodel.graph.resolution."""

from __future__ import annotations

import pytest

from codemodel.graph import CycleDepthAnalyzer, DependencyGraphBuilder, external_packages
from codemodel.graph.resolution import JavaScriptResolver, PythonResolver, canonical_package, package_name
from codemodel.models import EdgeKind, ImportEdgeSpec, Language, ManifestInfo
from tests._fixtures.descriptors import module, span


def _spec(target: str, *symbols: str) -> ImportEdgeSpec:
    return ImportEdgeSpec(target=target, symbols=symbols, span=span(1))


def test_nodes_are_indexed_in_path_order() -> None:
    graph = DependencyGraphBuilder().build([module("b.js"), module("a.js"), module("c/index.js")])
    assert [(node.index, node.path) for node in graph.nodes] == [(0, "a.js"), (1, "b.js"), (2, "c/index.js")]


def test_every_import_yields_one_edge() -> None:
    modules = [
        module("src/app.js", "./util", "./util.js", "express", "fs", "./missing", "lodash/fp"),
        module("src/util.js"),
    ]
    manifest = ManifestInfo(node_packages={"express": "^4", "lodash": "^4"})

    graph = DependencyGraphBuilder().build(modules, external_packages(manifest))

    kinds = [(edge.specifier, edge.kind, edge.target, edge.package) for edge in graph.edges]
    assert kinds == [
        ("./util", EdgeKind.INTERNAL, 1, None),
        ("./util.js", EdgeKind.INTERNAL, 1, None),
        ("express", EdgeKind.EXTERNAL, None, "express"),
        ("fs", EdgeKind.EXTERNAL, None, "fs"),
        ("./missing", EdgeKind.UNRESOLVED, None, None),
        ("lodash/fp", EdgeKind.EXTERNAL, None, "lodash"),
    ]
    assert [edge.line for edge in graph.edges] == [1, 2, 3, 4, 5, 6]
    assert graph.successors[0] == (1, 1)


def test_duplicate_descriptor_paths_are_rejected() -> None:
    with pytest.raises(ValueError):
        DependencyGraphBuilder().build([module("a.py"), module("a.py")])


def test_python_resolution_prefers_submodules_and_src_roots() -> None:
    known = {"src/pkg/__init__.py", "src/pkg/models.py", "src/pkg/api/views.py", "tool.py"}
    resolver = PythonResolver(known, ["PyYAML", "requests"])

    assert resolver.resolve("src/pkg/api/views.py", _spec("pkg", "models")).path == "src/pkg/models.py"
    assert resolver.resolve("src/pkg/api/views.py", _spec("pkg", "Thing")).path == "src/pkg/__init__.py"
    assert resolver.resolve("src/pkg/api/views.py", _spec("..models")).path == "src/pkg/models.py"
    assert resolver.resolve("src/pkg/api/views.py", _spec("..", "models")).path == "src/pkg/models.py"
    assert resolver.resolve("src/pkg/models.py", _spec(".", "Thing")).path == "src/pkg/__init__.py"

    yaml = resolver.resolve("tool.py", _spec("yaml"))
    assert (yaml.kind, yaml.package) == (EdgeKind.EXTERNAL, "PyYAML")
    stdlib = resolver.resolve("tool.py", _spec("os.path"))
    assert (stdlib.kind, stdlib.package) == (EdgeKind.EXTERNAL, "os")
    assert resolver.resolve("tool.py", _spec("nowhere")).kind is EdgeKind.UNRESOLVED
    assert resolver.resolve("tool.py", _spec("....too.far")).kind is EdgeKind.UNRESOLVED


def test_module_shadowing_a_stdlib_or_package_name_does_not_import_itself() -> None:
    modules = [
        module("pkg/__init__.py"),
        module("pkg/logging.py", "logging"),
        module("pkg/json.py", "json"),
        module("pkg/requests.py", "requests"),
    ]
    manifest = ManifestInfo(python_packages={"requests": "*"})

    graph = DependencyGraphBuilder().build(modules, external_packages(manifest))

    kinds = [(edge.specifier, edge.kind, edge.package) for edge in graph.edges]
    assert kinds == [
        ("json", EdgeKind.EXTERNAL, "json"),
        ("logging", EdgeKind.EXTERNAL, "logging"),
        ("requests", EdgeKind.EXTERNAL, "requests"),
    ]
    assert graph.internal_edges == ()
    assert CycleDepthAnalyzer().analyze(graph).cycles == ()


def test_scripts_outside_packages_import_bare_siblings() -> None:
    known = {"scripts/run.py", "scripts/helpers.py", "lib/tool.py", "lib/helpers.py", "lib/__init__.py"}
    resolver = PythonResolver(known, [])

    assert resolver.resolve("scripts/run.py", _spec("helpers")).path == "scripts/helpers.py"
    assert resolver.resolve("scripts/run.py", _spec("run")).kind is EdgeKind.UNRESOLVED
    assert resolver.resolve("lib/tool.py", _spec("helpers")).kind is EdgeKind.UNRESOLVED


def test_javascript_resolution_tries_extensions_and_index_files() -> None:
    known = {"src/lib/index.ts", "src/app.tsx", "src/util.ts", "shared/types.d.ts"}
    resolver = JavaScriptResolver(known, ["@scope/ui", "react"])

    assert resolver.resolve("src/app.tsx", _spec("./lib")).path == "src/lib/index.ts"
    assert resolver.resolve("src/app.tsx", _spec("./util.js")).path == "src/util.ts"
    assert resolver.resolve("src/app.tsx", _spec("../shared/types")).path == "shared/types.d.ts"
    assert resolver.resolve("src/app.tsx", _spec("../../outside")).kind is EdgeKind.UNRESOLVED

    scoped = resolver.resolve("src/app.tsx", _spec("@scope/ui/button"))
    assert (scoped.kind, scoped.package) == (EdgeKind.EXTERNAL, "@scope/ui")
    builtin = resolver.resolve("src/app.tsx", _spec("node:fs/promises"))
    assert (builtin.kind, builtin.package) == (EdgeKind.EXTERNAL, "fs")
    assert resolver.resolve("src/app.tsx", _spec("left-pad")).kind is EdgeKind.UNRESOLVED


def test_package_name_helpers() -> None:
    assert package_name("@babel/core/lib") == "@babel/core"
    assert package_name("lodash/fp") == "lodash"
    assert canonical_package("Typing-Extensions") == "typing_extensions"


def test_external_packages_are_split_by_language() -> None:
    manifest = ManifestInfo(python_packages={"flask": "*"}, node_packages={"react": "18"})
    assert external_packages(manifest) == {Language.PY_LIKE: ["flask"], Language.JS_LIKE: ["react"]}

"""Import specifier resolution rules for each language family."""

from __future__ import annotations

import posixpath
import re
import sys
from dataclasses import dataclass
from typing import Collection, Dict, Iterable, List, Optional, Sequence

from ..models import EdgeKind, ImportEdgeSpec

JS_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts", ".d.ts")
PY_ROOTS = ("", "src")

# Compiled ESM output is often imported by its emitted name from TypeScript sources.
_EMITTED_SUFFIXES: Dict[str, Sequence[str]] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

NODE_BUILTINS = frozenset(
    {
        "assert", "async_hooks", "buffer", "child_process", "cluster", "console", "constants",
        "crypto", "dgram", "diagnostics_channel", "dns", "domain", "events", "fs", "http",
        "http2", "https", "inspector", "module", "net", "os", "path", "perf_hooks", "process",
        "punycode", "querystring", "readline", "repl", "stream", "string_decoder", "sys",
        "timers", "tls", "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
        "worker_threads", "zlib",
    }
)

# Import name -> distribution name, for packages whose import name differs.
_PYTHON_ALIASES: Dict[str, str] = {
    "yaml": "pyyaml",
    "PIL": "pillow",
    "sklearn": "scikit-learn",
    "bs4": "beautifulsoup4",
    "cv2": "opencv-python",
    "dateutil": "python-dateutil",
    "dotenv": "python-dotenv",
    "jwt": "pyjwt",
    "attr": "attrs",
}

_CANONICAL = re.compile(r"[-_.]+")


def canonical_package(name: str) -> str:
    """Normalize a distribution or import name for comparison."""
    return _CANONICAL.sub("_", name).lower()


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a single import specifier."""

    kind: EdgeKind
    path: Optional[str] = None
    package: Optional[str] = None


_UNRESOLVED = Resolution(EdgeKind.UNRESOLVED)


class PythonResolver:
    """Resolves absolute and relative Python imports against known paths."""

    def __init__(self, known_paths: Collection[str], packages: Iterable[str]) -> None:
        self._paths = known_paths
        self._packages: Dict[str, str] = {}
        for name in packages:
            self._packages.setdefault(canonical_package(name), name)

    def resolve(self, importer: str, spec: ImportEdgeSpec) -> Resolution:
        target = spec.target
        if target.startswith("."):
            dots = len(target) - len(target.lstrip("."))
            module = target[dots:]
            base = posixpath.dirname(importer)
            for _ in range(dots - 1):
                if not base:
                    return _UNRESOLVED
                base = posixpath.dirname(base)
            found = self._module_or_submodule([base], module, spec.symbols)
            return Resolution(EdgeKind.INTERNAL, path=found) if found else _UNRESOLVED

        # An absolute import never names the importing module itself.
        found = self._module_or_submodule(PY_ROOTS, target, spec.symbols, exclude=importer)
        if found:
            return Resolution(EdgeKind.INTERNAL, path=found)
        external = self._external(target)
        if external.kind is not EdgeKind.UNRESOLVED:
            return external

        # Scripts outside a package import their siblings by bare name.
        importer_dir = posixpath.dirname(importer)
        if importer_dir not in PY_ROOTS and posixpath.join(importer_dir, "__init__.py") not in self._paths:
            found = self._module_or_submodule([importer_dir], target, spec.symbols, exclude=importer)
            if found:
                return Resolution(EdgeKind.INTERNAL, path=found)
        return external

    def _module_or_submodule(
        self,
        roots: Sequence[str],
        module: str,
        symbols: Sequence[str],
        exclude: Optional[str] = None,
    ) -> Optional[str]:
        # ``from pkg import mod`` names a submodule when one exists.
        for symbol in symbols:
            if symbol == "*":
                continue
            dotted = f"{module}.{symbol}" if module else symbol
            found = self._lookup(roots, dotted, exclude)
            if found:
                return found
        if module:
            return self._lookup(roots, module, exclude)
        return self._lookup_package(roots)

    def _lookup(self, roots: Sequence[str], dotted: str, exclude: Optional[str] = None) -> Optional[str]:
        relative = dotted.replace(".", "/")
        for root in roots:
            stem = posixpath.join(root, relative) if root else relative
            for candidate in (f"{stem}.py", f"{stem}/__init__.py", f"{stem}.pyi"):
                if candidate in self._paths and candidate != exclude:
                    return candidate
        return None

    def _lookup_package(self, roots: Sequence[str]) -> Optional[str]:
        for root in roots:
            candidate = posixpath.join(root, "__init__.py") if root else "__init__.py"
            if candidate in self._paths:
                return candidate
        return None

    def _external(self, target: str) -> Resolution:
        top = target.split(".", 1)[0]
        alias = _PYTHON_ALIASES.get(top)
        for name in (alias, top):
            if name is None:
                continue
            package = self._packages.get(canonical_package(name))
            if package is not None:
                return Resolution(EdgeKind.EXTERNAL, package=package)
        if top in sys.stdlib_module_names:
            return Resolution(EdgeKind.EXTERNAL, package=top)
        return _UNRESOLVED


class JavaScriptResolver:
    """Node-style resolution: relative paths, extension trial, ``index`` fallback."""

    def __init__(self, known_paths: Collection[str], packages: Iterable[str]) -> None:
        self._paths = known_paths
        self._packages = set(packages)

    def resolve(self, importer: str, spec: ImportEdgeSpec) -> Resolution:
        target = spec.target
        if not target:
            return _UNRESOLVED
        if target.startswith((".", "/")):
            found = self._resolve_path(importer, target)
            return Resolution(EdgeKind.INTERNAL, path=found) if found else _UNRESOLVED
        return self._external(target)

    def _resolve_path(self, importer: str, target: str) -> Optional[str]:
        if target.startswith("/"):
            joined = posixpath.normpath(target.lstrip("/"))
        else:
            joined = posixpath.normpath(posixpath.join(posixpath.dirname(importer), target))
        if joined == ".." or joined.startswith("../"):
            return None
        if joined == ".":
            joined = ""
        for candidate in self.candidates(joined):
            if candidate in self._paths:
                return candidate
        return None

    @staticmethod
    def candidates(stem: str) -> List[str]:
        options: List[str] = []
        if stem:
            options.append(stem)
            options.extend(f"{stem}{extension}" for extension in JS_EXTENSIONS)
            base, extension = posixpath.splitext(stem)
            options.extend(f"{base}{swap}" for swap in _EMITTED_SUFFIXES.get(extension, ()))
        index = posixpath.join(stem, "index") if stem else "index"
        options.extend(f"{index}{extension}" for extension in JS_EXTENSIONS)
        return options

    def _external(self, target: str) -> Resolution:
        bare = target[len("node:") :] if target.startswith("node:") else target
        package = package_name(bare)
        if package in self._packages:
            return Resolution(EdgeKind.EXTERNAL, package=package)
        if target.startswith("node:") or package in NODE_BUILTINS:
            return Resolution(EdgeKind.EXTERNAL, package=package)
        return _UNRESOLVED


def package_name(specifier: str) -> str:
    """Return the npm package portion of a bare specifier."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


__all__ = [
    "JS_EXTENSIONS",
    "JavaScriptResolver",
    "NODE_BUILTINS",
    "PythonResolver",
    "Resolution",
    "canonical_package",
    "package_name",
]

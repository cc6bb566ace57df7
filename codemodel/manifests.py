"""Dependency manifest parsing: package maps, framework tags and entry hints."""

from __future__ import annotations

import json
import posixpath
import re
import tomllib
from typing import Dict, Iterable, List, Mapping, Tuple

from .logging import get_logger
from .models import ContractViolation, EntryHint, ManifestInfo

_REQUIREMENT_SPLIT = re.compile(r"[<>=!~;\[\s@]")
_REQUIREMENTS_NAME = re.compile(r"^requirements([-_.][\w.-]+)?\.(txt|in)$")

_PYTHON_FRAMEWORKS: Tuple[Tuple[str, str], ...] = (
    ("fastapi", "FastAPI"),
    ("django", "Django"),
    ("flask", "Flask"),
    ("sqlalchemy", "SQLAlchemy"),
    ("pydantic", "Pydantic"),
    ("click", "Click"),
)

_NODE_FRAMEWORKS: Tuple[Tuple[str, str], ...] = (
    ("express", "Express"),
    ("koa", "Koa"),
    ("@nestjs/core", "NestJS"),
    ("next", "Next.js"),
    ("react", "React"),
    ("vue", "Vue"),
)

logger = get_logger("manifests")


class ManifestParseError(ValueError):
    """Raised internally when a manifest's text is not well formed."""


def is_manifest(path: str) -> bool:
    """Return True when ``path`` names a manifest file this reader understands."""
    name = path.rsplit("/", 1)[-1]
    if name in {"package.json", "pyproject.toml", "Pipfile"}:
        return True
    if _REQUIREMENTS_NAME.match(name):
        return True
    parent = path.rsplit("/", 2)[-2] if path.count("/") >= 1 else ""
    return parent == "requirements" and name.endswith(".txt")


class ManifestReader:
    """Reads manifest texts into a single :class:`ManifestInfo`."""

    def read(self, manifests: Mapping[str, str]) -> ManifestInfo:
        if not isinstance(manifests, Mapping):
            raise ContractViolation("manifests must be a mapping of path to text")
        info = ManifestInfo()
        python_deps: List[str] = []
        node_deps: List[str] = []

        for path in sorted(manifests):
            text = manifests[path]
            if not isinstance(path, str) or not isinstance(text, str):
                raise ContractViolation("manifest paths and contents must be strings")
            if not is_manifest(path):
                logger.debug("Skipping unrecognised manifest %s", path)
                continue
            info.manifests.append(path)
            name = path.rsplit("/", 1)[-1]
            try:
                if name == "package.json":
                    packages, hints = _parse_package_json(path, text)
                    _merge(info.node_packages, packages)
                    node_deps.extend(packages)
                elif name == "pyproject.toml":
                    packages, hints = _parse_pyproject(path, text)
                    _merge(info.python_packages, packages)
                    python_deps.extend(packages)
                elif name == "Pipfile":
                    packages, hints = _parse_pipfile(text), []
                    _merge(info.python_packages, packages)
                    python_deps.extend(packages)
                else:
                    packages, hints = _parse_requirements(text), []
                    _merge(info.python_packages, packages)
                    python_deps.extend(packages)
            except ManifestParseError as exc:
                info.warnings.append(f"{path}: {exc}")
                info.degraded = True
                logger.warning("Manifest %s could not be parsed: %s", path, exc)
                continue
            info.entry_hints.extend(hints)

        info.frameworks = _unique(
            detect_python_frameworks(python_deps) + detect_node_frameworks(node_deps)
        )
        logger.debug(
            "Read %d manifests: %d python packages, %d node packages, frameworks=%s",
            len(info.manifests),
            len(info.python_packages),
            len(info.node_packages),
            info.frameworks,
        )
        return info


def _merge(target: Dict[str, str], packages: Mapping[str, str]) -> None:
    for name, version in packages.items():
        target.setdefault(name, version)


def _unique(items: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def _parse_requirements(text: str) -> Dict[str, str]:
    packages: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.split(" #", 1)[0].strip()
        if not stripped or stripped.startswith(("#", "-")) or "://" in stripped.split("@", 1)[0]:
            continue
        name, version = _split_requirement(stripped)
        if name:
            packages.setdefault(name, version)
    return packages


def _split_requirement(requirement: str) -> Tuple[str, str]:
    name = _REQUIREMENT_SPLIT.split(requirement.strip(), 1)[0].strip()
    version = requirement.strip()[len(name) :].split(";", 1)[0].strip()
    if version.startswith("["):
        version = version[version.find("]") + 1 :].strip()
    return name, version or "*"


def _parse_pyproject(path: str, text: str) -> Tuple[Dict[str, str], List[EntryHint]]:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(f"invalid TOML ({exc})") from exc

    packages: Dict[str, str] = {}
    hints: List[EntryHint] = []

    project = data.get("project")
    if isinstance(project, dict):
        requirements = list(project.get("dependencies", []) or [])
        optional = project.get("optional-dependencies", {}) or {}
        if isinstance(optional, dict):
            for values in optional.values():
                requirements.extend(values or [])
        for requirement in requirements:
            if isinstance(requirement, str):
                name, version = _split_requirement(requirement)
                if name:
                    packages.setdefault(name, version)
        for table in ("scripts", "gui-scripts"):
            scripts = project.get(table)
            if isinstance(scripts, dict):
                hints.extend(_script_hints(path, scripts.values()))

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        poetry_deps = poetry.get("dependencies", {}) or {}
        if isinstance(poetry_deps, dict):
            for name, spec in poetry_deps.items():
                if name.lower() == "python":
                    continue
                version = spec if isinstance(spec, str) else spec.get("version", "*") if isinstance(spec, dict) else "*"
                packages.setdefault(name, str(version))
        scripts = poetry.get("scripts")
        if isinstance(scripts, dict):
            hints.extend(_script_hints(path, (v for v in scripts.values() if isinstance(v, str))))

    return packages, hints


def _script_hints(manifest: str, targets: Iterable[object]) -> List[EntryHint]:
    hints: List[EntryHint] = []
    for target in targets:
        if not isinstance(target, str):
            continue
        module = target.split(":", 1)[0].strip()
        if module:
            hints.append(EntryHint(kind="module", value=module, manifest=manifest))
    return hints


def _parse_pipfile(text: str) -> Dict[str, str]:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(f"invalid TOML ({exc})") from exc
    packages: Dict[str, str] = {}
    for table in ("packages", "dev-packages"):
        section = data.get(table)
        if not isinstance(section, dict):
            continue
        for name, spec in section.items():
            version = spec if isinstance(spec, str) else spec.get("version", "*") if isinstance(spec, dict) else "*"
            packages.setdefault(name, str(version))
    return packages


def _parse_package_json(path: str, text: str) -> Tuple[Dict[str, str], List[EntryHint]]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise ManifestParseError("package.json root must be an object")

    packages: Dict[str, str] = {}
    for key in ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies"):
        deps = data.get(key, {})
        if isinstance(deps, dict):
            for name, version in deps.items():
                packages.setdefault(name, str(version))

    base = posixpath.dirname(path)
    hints: List[EntryHint] = []
    targets: List[str] = []
    for key in ("main", "module"):
        value = data.get(key)
        if isinstance(value, str):
            targets.append(value)
    binaries = data.get("bin")
    if isinstance(binaries, str):
        targets.append(binaries)
    elif isinstance(binaries, dict):
        targets.extend(value for _, value in sorted(binaries.items()) if isinstance(value, str))
    for target in targets:
        joined = posixpath.normpath(posixpath.join(base, target))
        if joined.startswith("../"):
            continue
        hints.append(EntryHint(kind="path", value=joined, manifest=path))
    return packages, hints


def detect_python_frameworks(dependencies: Iterable[str]) -> List[str]:
    lower_deps = {dep.lower() for dep in dependencies}
    return [label for key, label in _PYTHON_FRAMEWORKS if key in lower_deps]


def detect_node_frameworks(dependencies: Iterable[str]) -> List[str]:
    lower = {dep.lower() for dep in dependencies}
    return [label for key, label in _NODE_FRAMEWORKS if key in lower]


__all__ = [
    "ManifestReader",
    "detect_node_frameworks",
    "detect_python_frameworks",
    "is_manifest",
]

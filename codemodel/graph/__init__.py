"""Dependency graph construction and analysis."""

from .analysis import CycleDepthAnalyzer
from .builder import DependencyGraphBuilder, external_packages

__all__ = ["CycleDepthAnalyzer", "DependencyGraphBuilder", "external_packages"]

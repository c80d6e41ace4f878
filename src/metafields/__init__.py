"""
metafields - Declarative field schemas with conditional visibility.

Declare a tree of form fields (flat, grouped or repeated) once and use it
to render wrappers with the right initial visibility, re-evaluate
visibility live while the form is edited, and sanitize submitted values
into a value tree mirroring the schema.
"""

from __future__ import annotations

from ._version import get_version
from .core import ir
from .core.errors import ConfigError, FormConfigError, MetafieldsError, RowLimitError
from .core.normalizer import normalize, normalize_schema
from .core.rules import evaluate_condition, is_satisfied
from .runtime.controller import VisibilityController
from .runtime.rows import RepeaterRows
from .runtime.value_tree import sanitize, sanitize_submission
from .runtime.visibility import compute_initial_visibility

__version__ = get_version()

__all__ = [
    "__version__",
    "ir",
    "MetafieldsError",
    "ConfigError",
    "FormConfigError",
    "RowLimitError",
    "normalize",
    "normalize_schema",
    "evaluate_condition",
    "is_satisfied",
    "sanitize",
    "sanitize_submission",
    "compute_initial_visibility",
    "VisibilityController",
    "RepeaterRows",
]

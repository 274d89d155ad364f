"""cesval - Structural validator for conversational agent packages.

cesval indexes an agent package directory (root manifest, agents, toolsets,
guardrails, evaluations, environment bindings) and checks it against a fixed
battery of structural and cross-reference rules.
"""

__version__ = "0.1.0"
__description__ = "Structural validator for conversational agent packages"

from cesval.config import CesvalConfig
from cesval.parser.package import build_package_model
from cesval.validation.framework import run_rules, validate_package

__all__ = [
    "__version__",
    "__description__",
    "CesvalConfig",
    "build_package_model",
    "run_rules",
    "validate_package",
]

"""Core validation framework for agent packages.

Rules are pluggable; each inspects a ``PackageModel`` and appends issues to a
shared ``ValidationResult``. Issues are sorted by (file, line, code) once all
rules have run so output is deterministic.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..config import CesvalConfig
from ..models.package import PackageModel
from ..parser.package import build_package_model

logger = logging.getLogger(__name__)

RUNTIME_ERROR_CODE = "CES_VALIDATOR_RUNTIME_ERROR"


class IssueSeverity(str, Enum):
    """Severity of a single issue."""
    ERROR = "error"
    WARNING = "warning"


class ValidationStatus(str, Enum):
    """Overall status of a validation run."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass
class ValidationIssue:
    """A single validation finding."""
    code: str
    message: str
    severity: IssueSeverity
    file: str
    line: int | None = None  # 1-based, best effort

    def sort_key(self) -> tuple[str, int, str]:
        return (self.file, self.line or 1, self.code)

    def __str__(self) -> str:
        location = self.file if self.line is None else f"{self.file}:{self.line}"
        return f"[{self.severity.value.upper()}] {self.code}: {self.message} ({location})"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "file": self.file,
            "line": self.line,
        }


@dataclass
class ValidationResult:
    """Results of a validation run."""
    status: ValidationStatus = ValidationStatus.PASS
    issues: list[ValidationIssue] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=dict)
    fail_on_warnings: bool = False

    @property
    def exit_code(self) -> int:
        """Exit code for CI: 0 = pass/warn, 1 = fail (or warn when failing on warnings)."""
        if self.status == ValidationStatus.FAIL:
            return 1
        if self.status == ValidationStatus.WARN and self.fail_on_warnings:
            return 1
        return 0

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == IssueSeverity.WARNING]

    def add_issue(self, code: str, severity: IssueSeverity, message: str,
                  file: str | Path, line: int | None = None) -> None:
        """Add a validation issue."""
        self.issues.append(ValidationIssue(code, message, severity, str(file), line))

        # Update overall status (fail > warn > pass)
        if severity == IssueSeverity.ERROR:
            self.status = ValidationStatus.FAIL
        elif self.status == ValidationStatus.PASS:
            self.status = ValidationStatus.WARN

    def error(self, code: str, message: str, file: str | Path, line: int | None = None) -> None:
        self.add_issue(code, IssueSeverity.ERROR, message, file, line)

    def warning(self, code: str, message: str, file: str | Path, line: int | None = None) -> None:
        self.add_issue(code, IssueSeverity.WARNING, message, file, line)

    def increment_counter(self, name: str, value: int = 1) -> None:
        """Increment a counter."""
        self.counters[name] = self.counters.get(name, 0) + value

    def sort_issues(self) -> None:
        self.issues.sort(key=ValidationIssue.sort_key)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "status": self.status.value,
            "exit_code": self.exit_code,
            "counters": self.counters,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class ValidationRule(ABC):
    """Base class for validation rules."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Rule name for identification."""
        pass

    @abstractmethod
    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        """Execute validation rule.

        Args:
            model: Indexed agent package
            config: cesval configuration
            result: Validation result to update with issues/counters
        """
        pass


class ValidationFramework:
    """Runs a battery of rules against a package model."""

    def __init__(self, config: CesvalConfig | None = None):
        self.config = config or CesvalConfig()
        self.rules: list[ValidationRule] = []

    def add_rule(self, rule: ValidationRule) -> None:
        """Add a validation rule."""
        self.rules.append(rule)

    def validate(self, model: PackageModel) -> ValidationResult:
        """Run every rule against the model.

        Args:
            model: Package model to validate

        Returns:
            ValidationResult with status, sorted issues, and counters
        """
        result = ValidationResult(fail_on_warnings=self.config.validation.fail_on_warnings)

        logger.info(f"Validating agent package at {model.root_path}")
        logger.debug(f"Running {len(self.rules)} validation rules")

        result.increment_counter("agents", len(model.agents))
        result.increment_counter("toolsets", len(model.toolsets))
        result.increment_counter("evaluations", len(model.evaluations))
        result.increment_counter("instructions", len(model.instructions))
        result.increment_counter("direct_tools", len(model.direct_tools))
        result.increment_counter("openapi_operations", len(model.openapi_operations))

        for rule in self.rules:
            logger.debug(f"Executing rule: {rule.name}")
            try:
                rule.validate(model, self.config, result)
            except Exception as e:
                logger.error(f"Rule {rule.name} failed with error: {e}")
                result.error(
                    RUNTIME_ERROR_CODE,
                    f"Rule '{rule.name}' execution failed: {e}",
                    model.default_manifest_path,
                    1,
                )

        result.sort_issues()

        logger.info(f"Validation completed with status: {result.status.value}")
        logger.info(f"Found {len(result.errors)} errors and {len(result.warnings)} warnings")

        return result

    def create_default_rules(self) -> None:
        """Register the standard rule battery."""
        from .rules import default_rules

        for rule in default_rules():
            self.add_rule(rule)


def run_rules(model: PackageModel, config: CesvalConfig | None = None) -> list[ValidationIssue]:
    """Run all default rules against ``model`` and return the sorted issues."""
    framework = ValidationFramework(config)
    framework.create_default_rules()
    return framework.validate(model).issues


def index_and_validate(
    root_path: Path | str, config: CesvalConfig | None = None
) -> tuple[PackageModel | None, ValidationResult]:
    """Build the package model for ``root_path`` and run the default rules.

    An unexpected exception while building the model is reported as a single
    runtime-error issue on the root manifest instead of propagating; the
    returned model is None in that case.
    """
    root_path = Path(root_path)
    framework = ValidationFramework(config)
    framework.create_default_rules()

    try:
        model = build_package_model(root_path)
    except Exception as e:
        logger.error(f"Failed to index package at {root_path}: {e}")
        result = ValidationResult(fail_on_warnings=framework.config.validation.fail_on_warnings)
        result.error(RUNTIME_ERROR_CODE, str(e) or type(e).__name__, root_path / "app.yaml", 1)
        return None, result

    return model, framework.validate(model)


def validate_package(root_path: Path | str, config: CesvalConfig | None = None) -> ValidationResult:
    """Build the package model for ``root_path`` and validate it."""
    return index_and_validate(root_path, config)[1]

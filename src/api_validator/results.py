"""Validation outcome models."""

from pydantic import BaseModel, ConfigDict

from api_validator.errors import ConstraintViolation


class ValidationError(BaseModel):
    """A single rule violation found while checking a value."""

    model_config = ConfigDict(frozen=True)

    path: str  # body.items[2].price / query.limit / header.X-Request-Id
    rule: str  # type / required / enum / minimum / ...
    message: str
    expected: str = ""
    actual: str = ""

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class ValidationResult(BaseModel):
    """Ordered, immutable collection of violations; empty means valid."""

    model_config = ConfigDict(frozen=True)

    errors: tuple[ValidationError, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, path: str, rule: str, message: str, **details: str) -> "ValidationResult":
        return cls(errors=(ValidationError(path=path, rule=rule, message=message, **details),))

    @classmethod
    def merge(cls, *results: "ValidationResult") -> "ValidationResult":
        errors: list[ValidationError] = []
        for result in results:
            errors.extend(result.errors)
        return cls(errors=tuple(errors))

    def summary(self) -> str:
        """Human-readable description of every violation, one per line."""
        if self.valid:
            return "valid"
        if len(self.errors) == 1:
            return str(self.errors[0])
        lines = [f"{len(self.errors)} schema violations:"]
        lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)

    def raise_for_errors(self) -> None:
        """Raise ConstraintViolation when the result carries violations."""
        if not self.valid:
            raise ConstraintViolation(self)

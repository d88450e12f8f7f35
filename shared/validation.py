"""
Input validation that runs before any transaction is opened.

Each validator returns a ValidationResult instead of raising, so callers
can collect several problems and raise a single ValidationError.
"""
from dataclasses import dataclass, field

from shared.errors import ValidationError

ADDRESS_REQUIRED_FIELDS = (
    "first_name",
    "last_name",
    "address_line1",
    "city",
    "state",
    "postal_code",
    "country",
)
MAX_NOTES_LENGTH = 2000


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    errors: tuple = field(default_factory=tuple)

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, *errors: str) -> "ValidationResult":
        return cls(ok=False, errors=tuple(errors))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        if self.ok and other.ok:
            return self
        return ValidationResult(ok=False, errors=self.errors + other.errors)

    def raise_for_errors(self):
        if not self.ok:
            raise ValidationError("; ".join(self.errors), errors=list(self.errors))


def validate_quantity(quantity) -> ValidationResult:
    # bool is an int subclass; True must not pass as a quantity of 1
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return ValidationResult.failure("quantity must be an integer")
    if quantity <= 0:
        return ValidationResult.failure("quantity must be greater than zero")
    return ValidationResult.success()


def validate_address(address: dict | None, label: str, require_phone: bool = False) -> ValidationResult:
    if not address:
        return ValidationResult.failure(f"{label} is required")

    required = ADDRESS_REQUIRED_FIELDS + (("phone",) if require_phone else ())
    missing = [name for name in required if not str(address.get(name) or "").strip()]
    if missing:
        return ValidationResult.failure(*(f"{label}.{name} is required" for name in missing))
    return ValidationResult.success()


def validate_notes(notes: str | None) -> ValidationResult:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        return ValidationResult.failure(f"notes must be at most {MAX_NOTES_LENGTH} characters")
    return ValidationResult.success()

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    clamped_quantity: int


def validate_quantity(requested: int, available: int, anonymous: bool = False) -> ValidationResult:
    """
    Compare a requested quantity with what is in stock.

    Anonymous carts are never checked. Out of stock clamps to 0, otherwise
    an oversized request clamps to the available amount.
    """
    if anonymous:
        return ValidationResult(ok=True, clamped_quantity=requested)
    if available <= 0:
        return ValidationResult(ok=False, clamped_quantity=0)
    if requested > available:
        return ValidationResult(ok=False, clamped_quantity=available)
    return ValidationResult(ok=True, clamped_quantity=requested)


def validate(item, available_quantity: int, anonymous: bool = False) -> ValidationResult:
    return validate_quantity(item.quantity, available_quantity, anonymous=anonymous)

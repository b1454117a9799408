from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, places: int = 2) -> float:
    """Round like a spreadsheet does (2.345 -> 2.35), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp(value: float, lower: float = 0.0, upper: float = 10.0) -> float:
    return max(lower, min(upper, value))

import re
from typing import Any, NamedTuple


# "250 g", "2,5 tasses", "3"
QUANTITY_RE = re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*(.*?)\s*$", re.DOTALL)


class Quantity(NamedTuple):
    quantity: float
    unit: str


def parse_quantity(value: Any) -> Quantity:
    """Split a stored quantity into a number and a unit.

    Numbers pass straight through with no unit. Strings are read as a leading
    number (either ``.`` or ``,`` as the decimal separator) followed by the
    unit. Anything else comes back as ``Quantity(0, "")``, never an error.
    """
    if isinstance(value, bool):
        return Quantity(0, "")
    if isinstance(value, (int, float)):
        return Quantity(float(value), "")
    if not isinstance(value, str):
        return Quantity(0, "")

    match = QUANTITY_RE.match(value)
    if match is None:
        return Quantity(0, "")
    number, unit = match.groups()
    return Quantity(float(number.replace(",", ".")), unit)

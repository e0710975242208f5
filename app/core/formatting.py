"""Number formatting for scheme descriptions and offer labels."""
from typing import Optional, Union


def format_number(value: Optional[Union[int, float]]) -> str:
    """
    Render a number the way it is shown in scheme text.
    Whole floats drop the trailing ".0"; missing values render as "0".

    Examples:
        >>> format_number(10.0)
        '10'
        >>> format_number(12.5)
        '12.5'
    """
    if value is None:
        return "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

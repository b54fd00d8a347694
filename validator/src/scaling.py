"""Fixed-point conversion at the ledger boundary.

The oracle contract stores every value as an integer scaled by 10,000
(4 decimal digits). Values are scaled right before submission and unscaled
right after reading, nowhere else.

.. code-block:: python

    >>> scale(61025.5)
    610255000
    >>> unscale(610255000)
    61025.5
"""

SCALE_DECIMALS = 4
SCALE_FACTOR = 10 ** SCALE_DECIMALS


def scale(value: float) -> int:
    """Convert a decimal value to its on-ledger fixed-point integer.

    :param value: Decimal value.
    :returns: ``round(value * 10_000)`` as int.
    :raises ValueError: If value is NaN or infinite.
    """
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"Cannot scale non-finite value {value}")
    return int(round(value * SCALE_FACTOR))


def unscale(scaled_value: int) -> float:
    """Convert an on-ledger fixed-point integer back to a decimal value.

    :param scaled_value: Integer scaled by 10,000.
    :returns: Decimal value.
    """
    return int(scaled_value) / SCALE_FACTOR

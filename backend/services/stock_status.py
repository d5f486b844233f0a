"""Stock status derivation. Every save that touches quantity or reorder point goes through here."""

IN_STOCK = "In Stock"
LOW_STOCK = "Low Stock"
CRITICAL = "Critical"
OUT_OF_STOCK = "Out of Stock"

STATUSES = (IN_STOCK, LOW_STOCK, CRITICAL, OUT_OF_STOCK)

# Statuses that raise a reorder alert
LOW_STATUSES = (LOW_STOCK, CRITICAL)


def derive_status(quantity: int, reorder_point: int) -> str:
    """
    Map (quantity, reorder_point) to one of the four stock statuses.

    - quantity == 0                   -> Out of Stock
    - quantity <= reorder_point / 2   -> Critical
    - quantity <= reorder_point       -> Low Stock
    - otherwise                       -> In Stock

    The half threshold is compared exactly (quantity * 2 <= reorder_point), so an
    odd reorder point of 11 puts 5 in Critical and 6 in Low Stock.
    """
    if quantity == 0:
        return OUT_OF_STOCK
    if quantity * 2 <= reorder_point:
        return CRITICAL
    if quantity <= reorder_point:
        return LOW_STOCK
    return IN_STOCK

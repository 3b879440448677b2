ETHER_DECIMALS = 18


def format_units(value: int, decimals: int = ETHER_DECIMALS) -> str:
    """
    Format a fixed-point integer amount as a decimal string.

    Integer arithmetic only, so no precision is lost for any uint256.
    The output keeps at least one fractional digit and strips trailing
    zeros: ``5000 * 10**18`` -> ``"5000.0"``, ``15 * 10**17`` -> ``"1.5"``.

    Parameters
    ----------
    value : int
        Raw on-chain amount
    decimals : int
        Number of decimals of the token

    Returns
    -------
    str
        Human-readable decimal amount
    """
    value = int(value)
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10 ** decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{fraction_str or '0'}"


def format_ether(value: int) -> str:
    """Format an 18-decimal amount (RUSD, POL)."""
    return format_units(value, ETHER_DECIMALS)

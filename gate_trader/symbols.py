"""
Gate Trader - Symbol Conversion.

Canonical symbols are `{BASE}USDT` (BTCUSDT); Gate futures contracts are
`{BASE}_USDT` (BTC_USDT). Conversion is suffix based and case-insensitive.
"""

QUOTE_ASSET = "USDT"
SEPARATOR = "_"


def to_contract(symbol: str) -> str:
    """
    Convert a canonical symbol to a Gate contract name.

    BTCUSDT -> BTC_USDT
    """
    symbol = symbol.strip().upper()

    # Already in Gate format
    if SEPARATOR in symbol:
        return symbol

    if symbol.endswith(QUOTE_ASSET) and len(symbol) > len(QUOTE_ASSET):
        base = symbol[:-len(QUOTE_ASSET)]
        return f"{base}{SEPARATOR}{QUOTE_ASSET}"

    return symbol


def to_symbol(contract: str) -> str:
    """
    Convert a Gate contract name to a canonical symbol.

    BTC_USDT -> BTCUSDT
    """
    return contract.strip().upper().replace(SEPARATOR, "")

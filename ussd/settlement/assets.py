from typing import Dict, Optional, Sequence

from stellar_sdk import Asset

NATIVE_CODE = "XLM"


def build_asset_table(currencies: Sequence[str], issuers: Dict[str, str]) -> Dict[str, Asset]:
    """
    Map each supported currency code to its Stellar asset.
    XLM is the native asset; any other code needs an issuer and is skipped without one,
    which later surfaces as a configuration fault when someone tries to send it.
    """
    table: Dict[str, Asset] = {}
    for code in currencies:
        if code == NATIVE_CODE:
            table[code] = Asset.native()
            continue
        issuer = issuers.get(code)
        if issuer:
            table[code] = Asset(code, issuer)
    return table


def match_balance_line(line: dict, currency: str, asset: Optional[Asset]) -> bool:
    """Does a Horizon `balances[]` entry belong to this currency?"""
    if currency == NATIVE_CODE:
        return line.get("asset_type") == "native"
    if asset is None:
        return False
    return line.get("asset_code") == asset.code and line.get("asset_issuer") == asset.issuer

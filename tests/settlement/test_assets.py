from stellar_sdk import Keypair

from ussd.settlement.assets import build_asset_table, match_balance_line
from ussd.settings import parse_asset_issuers, parse_currency_list

ISSUER = Keypair.random().public_key


def test_asset_table_skips_codes_without_issuer():
    table = build_asset_table(["XLM", "USDC", "EURC"], {"USDC": ISSUER})
    assert set(table) == {"XLM", "USDC"}
    assert table["XLM"].is_native()
    assert table["USDC"].issuer == ISSUER


def test_match_balance_line():
    table = build_asset_table(["XLM", "USDC"], {"USDC": ISSUER})
    assert match_balance_line({"asset_type": "native"}, "XLM", table["XLM"])
    line = {"asset_type": "credit_alphanum4", "asset_code": "USDC", "asset_issuer": ISSUER}
    assert match_balance_line(line, "USDC", table["USDC"])
    assert not match_balance_line({**line, "asset_issuer": "GOTHER"}, "USDC", table["USDC"])


def test_currency_and_issuer_parsing():
    assert parse_currency_list(" xlm, USDC ,xlm,,eurc") == ["XLM", "USDC", "EURC"]
    assert parse_asset_issuers(f"usdc:{ISSUER}, bad ,EURC:") == {"USDC": ISSUER}

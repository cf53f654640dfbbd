"""
Token registry and contract addresses for Celo / Mento
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from autoclaw.errors import UnknownTokenError


class Token(BaseModel):
    """Token data model"""
    symbol: str
    address: str
    decimals: int = Field(ge=0, le=18)
    name: str = ""

    model_config = {"frozen": True}


# Mento protocol contracts
BROKER_ADDRESS = "0x777A8255cA72412f0d706dc03C9D1987306B4CaD"
BIPOOL_MANAGER_ADDRESS = "0x22d9db95E6Ae61c104A7B6F6C78D7993B94ec901"

CELO_ADDRESS = "0x471EcE3750Da237f93B8E339c536989b8978a438"
USDM_ADDRESS = "0x765DE816845861e75A25fCA122bb6898B8B1282a"
USDC_CELO_ADDRESS = "0xcebA9300f2b948710d2653dD7B07f33A8B32118C"
USDT_CELO_ADDRESS = "0x48065fbBE25f71C9282ddf5e1cD6D6A887483D5e"

MAX_UINT256 = 2 ** 256 - 1

MENTO_TOKEN_ADDRESSES: Dict[str, str] = {
    "USDm": USDM_ADDRESS,
    "EURm": "0xD8763CBa276a3738E6DE85b4b3bF5FDed6D6cA73",
    "BRLm": "0xe8537a3d056DA446677B9E9d6c5dB704EaAb4787",
    "KESm": "0x456a3D042C0DbD3db53D5489e98dFb038553B0d0",
    "PHPm": "0x105d4A9306D2E55a71d2Eb95B81553AE1dC20d7B",
    "COPm": "0x8A567e2aE79CA692Bd748aB832081C45de4041eA",
    "XOFm": "0x73F93dcc49cB8A239e2032663e9475dd5ef29A08",
    "NGNm": "0xE2702Bd97ee33c88c8f6f92DA3B733608aa76F71",
    "JPYm": "0xc45eCF20f3CD864B32D9794d6f76814aE8892e20",
    "CHFm": "0xb55a79F398E759E43C95b979163f30eC87Ee131D",
    "ZARm": "0x4c35853A3B4e647fD266f4de678dCc8fEC410BF6",
    "GBPm": "0xCCF663b1fF11028f0b19058d0f7B674004a40746",
    "AUDm": "0x7175504C455076F15c04A2F90a8e352281F492F9",
    "CADm": "0xff4Ab19391af240c311c54200a492233052B6325",
    "GHSm": "0xfAeA5F3404bbA20D3cc2f8C4B0A888F55a3c7313",
}

MENTO_TOKEN_NAMES: Dict[str, str] = {
    "USDm": "Mento Dollar",
    "EURm": "Mento Euro",
    "BRLm": "Mento Real",
    "KESm": "Mento Shilling",
    "PHPm": "Mento Peso",
    "COPm": "Mento Peso",
    "XOFm": "Mento CFA Franc",
    "NGNm": "Mento Naira",
    "JPYm": "Mento Yen",
    "CHFm": "Mento Franc",
    "ZARm": "Mento Rand",
    "GBPm": "Mento Pound",
    "AUDm": "Mento AUD",
    "CADm": "Mento CAD",
    "GHSm": "Mento Cedi",
}


class TokenRegistry:
    """Static token reference data, looked up by symbol or address"""

    def __init__(self, tokens: List[Token]):
        self._by_symbol: Dict[str, Token] = {}
        self._by_address: Dict[str, Token] = {}
        for token in tokens:
            self.register(token)

    def register(self, token: Token):
        """Add a token; symbols and addresses must stay unique"""
        if token.symbol.lower() in self._by_symbol:
            raise ValueError(f"Duplicate token symbol: {token.symbol}")
        self._by_symbol[token.symbol.lower()] = token
        self._by_address[token.address.lower()] = token

    def get(self, symbol: str) -> Optional[Token]:
        return self._by_symbol.get(symbol.lower())

    def by_symbol(self, symbol: str) -> Token:
        token = self.get(symbol)
        if token is None:
            raise UnknownTokenError(f"Unknown token symbol: {symbol}")
        return token

    def by_address(self, address: str) -> Token:
        token = self._by_address.get(address.lower())
        if token is None:
            raise UnknownTokenError(f"Unknown token address: {address}")
        return token

    def decimals_of(self, address: str) -> int:
        return self.by_address(address).decimals

    def all(self) -> List[Token]:
        return list(self._by_symbol.values())

    def __contains__(self, symbol: str) -> bool:
        return symbol.lower() in self._by_symbol


def _default_tokens() -> List[Token]:
    tokens = [
        Token(symbol=symbol, address=address, decimals=18, name=MENTO_TOKEN_NAMES[symbol])
        for symbol, address in MENTO_TOKEN_ADDRESSES.items()
    ]
    tokens.extend([
        Token(symbol="USDC", address=USDC_CELO_ADDRESS, decimals=6, name="USD Coin"),
        Token(symbol="USDT", address=USDT_CELO_ADDRESS, decimals=6, name="Tether USD"),
        Token(symbol="CELO", address=CELO_ADDRESS, decimals=18, name="Celo"),
        Token(symbol="XAUT", address="0xaf37E8B6C9ED7f6318979f56Fc287d76c30847ff", decimals=18, name="Tether Gold"),
    ])
    return tokens


# Global registry instance
token_registry = TokenRegistry(_default_tokens())

# Hubs tried in priority order when no direct pool exists
DEFAULT_HUB_TOKENS: List[str] = [USDM_ADDRESS, CELO_ADDRESS]

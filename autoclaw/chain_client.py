"""
Chain RPC client for Celo - contract reads, gas estimation, signing and receipts
"""
import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Sequence

import aiohttp
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from eth_account import Account

from autoclaw.abis import ERC20_ABI
from autoclaw.config import settings
from autoclaw.errors import ChainError, ChainRPCError, ChainTimeout, ContractReverted

logger = logging.getLogger(__name__)


class ChainClient:
    """
    Thin async wrapper around AsyncWeb3.

    Every call is bounded by `timeout` so a stalled endpoint fails only the
    operation that issued it. Errors are translated into the chain error
    taxonomy: reverts become ContractReverted, stalls ChainTimeout and
    everything else at the transport level ChainRPCError.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: Optional[str] = None,
        timeout: Optional[float] = None,
        w3: Optional[AsyncWeb3] = None
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout or settings.rpc_timeout_seconds
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.account = Account.from_key(private_key) if private_key else None

    @property
    def address(self) -> Optional[str]:
        return self.account.address if self.account else None

    @staticmethod
    def _checksum(address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (ValueError, TypeError) as e:
            raise ChainRPCError(f"Invalid address {address!r}: {e}") from e

    async def _call(self, awaitable: Awaitable, description: str, timeout: Optional[float] = None) -> Any:
        """Run an RPC awaitable with a timeout and translate its errors"""
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout or self.timeout)
        except ContractLogicError as e:
            raise ContractReverted(f"{description} reverted: {e}") from e
        except (asyncio.TimeoutError, TimeExhausted) as e:
            raise ChainTimeout(f"{description} timed out") from e
        except ChainError:
            raise
        except (aiohttp.ClientError, OSError, Web3Exception, ValueError) as e:
            raise ChainRPCError(f"{description} failed: {e}") from e

    async def read_contract(
        self,
        address: str,
        abi: List[Dict],
        function_name: str,
        args: Sequence[Any] = ()
    ) -> Any:
        """Call a view function and return its decoded result"""
        contract = self.w3.eth.contract(address=self._checksum(address), abi=abi)
        function = getattr(contract.functions, function_name)
        return await self._call(function(*args).call(), f"{function_name}@{address}")

    async def get_erc20_balance(self, token: str, account: str) -> int:
        """Raw ERC-20 balance of `account`"""
        return await self.read_contract(token, ERC20_ABI, "balanceOf", [self._checksum(account)])

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        return await self.read_contract(
            token,
            ERC20_ABI,
            "allowance",
            [self._checksum(owner), self._checksum(spender)]
        )

    async def get_gas_recommendation(self) -> Dict[str, Any]:
        """
        Gas fee recommendation

        Prefers EIP-1559 fields when the latest block carries baseFeePerGas,
        falls back to legacy gasPrice.
        """
        try:
            latest_block = await self._call(self.w3.eth.get_block("latest"), "get_block")
            base_fee = latest_block.get("baseFeePerGas")
            if base_fee is not None:
                priority_fee = Web3.to_wei(1, "gwei")
                return {
                    "supports1559": True,
                    "maxFeePerGas": base_fee + priority_fee + Web3.to_wei(1, "gwei"),
                    "maxPriorityFeePerGas": priority_fee,
                    "legacyGasPrice": None,
                    "source": "provider.block.baseFeePerGas"
                }
            gas_price = await self._call(self.w3.eth.gas_price, "gas_price")
            return {
                "supports1559": False,
                "maxFeePerGas": None,
                "maxPriorityFeePerGas": None,
                "legacyGasPrice": gas_price,
                "source": "provider.gas_price"
            }
        except ChainError as e:
            logger.warning(f"Provider gas recommendation failed: {e}")

        return {
            "supports1559": True,
            "maxFeePerGas": Web3.to_wei(5, "gwei"),
            "maxPriorityFeePerGas": Web3.to_wei(1, "gwei"),
            "legacyGasPrice": None,
            "source": "fallback-defaults"
        }

    async def estimate_gas_limit(
        self,
        tx_request: Dict[str, Any],
        buffer_percent: int = 20,
        cap: int = 10_000_000
    ) -> int:
        """Estimate gas with a safety buffer, capped"""
        tx_params = {
            "to": tx_request.get("to"),
            "data": tx_request.get("data"),
            "value": tx_request.get("value", 0),
        }
        if "from" in tx_request:
            tx_params["from"] = tx_request["from"]

        estimated = await self._call(self.w3.eth.estimate_gas(tx_params), "estimate_gas")
        buffered = int(estimated * (100 + buffer_percent) / 100)
        return min(buffered, cap)

    async def send_transaction(self, to: str, data: str, value: int = 0) -> str:
        """
        Estimate, sign and broadcast a transaction from the executor wallet

        Returns:
            Transaction hash as 0x-prefixed hex
        """
        if self.account is None:
            raise ChainRPCError("Executor private key not configured (EXECUTOR_PRIVATE_KEY)")

        sender = self.account.address
        to = self._checksum(to)
        gas_limit = await self.estimate_gas_limit({"to": to, "data": data, "value": value, "from": sender})
        rec = await self.get_gas_recommendation()
        nonce = await self._call(self.w3.eth.get_transaction_count(sender, "pending"), "get_transaction_count")
        chain_id = await self._call(self.w3.eth.chain_id, "chain_id")

        tx: Dict[str, Any] = {
            "to": to,
            "data": data,
            "value": value,
            "gas": gas_limit,
            "nonce": nonce,
            "chainId": chain_id,
        }
        if rec["supports1559"] and rec["maxFeePerGas"] and rec["maxPriorityFeePerGas"]:
            tx["maxPriorityFeePerGas"] = rec["maxPriorityFeePerGas"]
            tx["maxFeePerGas"] = rec["maxFeePerGas"]
        else:
            tx["gasPrice"] = rec["legacyGasPrice"]

        signed = self.account.sign_transaction(tx)
        tx_hash = await self._call(self.w3.eth.send_raw_transaction(signed.raw_transaction), "send_raw_transaction")
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Sent transaction {tx_hash_hex} to {to}")
        return tx_hash_hex

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> Dict[str, Any]:
        """Wait for a transaction to be mined; a failed status raises ContractReverted"""
        receipt = await self._call(
            self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=3),
            f"receipt {tx_hash}",
            timeout=timeout + self.timeout
        )
        result = {
            "blockNumber": receipt["blockNumber"],
            "transactionHash": Web3.to_hex(receipt["transactionHash"]),
            "status": receipt["status"],
            "gasUsed": receipt["gasUsed"],
        }
        if result["status"] != 1:
            raise ContractReverted(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return result


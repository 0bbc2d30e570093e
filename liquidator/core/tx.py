# /liquidator/core/tx.py
# Async transaction submission for the operator client: durable nonce, kill switch gate.
from typing import Any, Dict

import redis.asyncio as redis
from eth_account import Account
from web3 import AsyncWeb3, AsyncHTTPProvider

from liquidator.core.config import settings
from liquidator.core.kill import is_kill_switch_active
from liquidator.core.logger import get_logger, KILL_TRIGGERED
from liquidator.core.nonce_manager import NonceManager

log = get_logger(__name__)


class TransactionKillSwitchError(Exception):
    pass


class TransactionManager:
    """Builds, signs and broadcasts transactions from the executor account."""
    def __init__(self):
        self.w3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url or "http://127.0.0.1:8545"))
        self.account = (
            Account.from_key(settings.EXECUTOR_PRIVATE_KEY.get_secret_value())
            if settings.EXECUTOR_PRIVATE_KEY
            else None
        )
        self.address = self.account.address if self.account else None
        self.nonce_manager = NonceManager(self.w3, self.address or "unset")
        self.redis = redis.Redis.from_url(settings.REDIS_URL)
        self.is_initialized = False

    async def initialize(self):
        if self.is_initialized:
            return
        await self.nonce_manager.initialize()
        self.is_initialized = True
        log.info("TRANSACTION_MANAGER_INITIALIZED", address=self.address)

    async def build_and_send_transaction(self, tx_params: Dict[str, Any]) -> str:
        if is_kill_switch_active():
            KILL_TRIGGERED.inc()
            log.critical("TRANSACTION_BLOCKED_BY_KILL_SWITCH", params=tx_params)
            raise TransactionKillSwitchError("Kill switch is active. Halting transaction.")

        async with self.redis.lock(f"nonce_lock:{self.address}", timeout=10):
            current_nonce = await self.nonce_manager.get_nonce()
            try:
                full_tx_params = {
                    "from": self.address,
                    "nonce": current_nonce,
                    "chainId": settings.chain_id,
                    **tx_params,
                }
                if "gas" not in full_tx_params:
                    full_tx_params["gas"] = await self.w3.eth.estimate_gas(full_tx_params)
                if "maxFeePerGas" not in full_tx_params:
                    gas_price = await self.w3.eth.gas_price
                    full_tx_params["maxFeePerGas"] = gas_price * 2
                    full_tx_params["maxPriorityFeePerGas"] = await self.w3.eth.max_priority_fee

                signed_tx = self.account.sign_transaction(full_tx_params)
                tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)

                # Only a broadcast transaction consumes the nonce.
                await self.nonce_manager.increment()
                log.info("TRANSACTION_BROADCASTED", tx_hash=tx_hash.hex(), nonce=current_nonce)
                return tx_hash.hex()
            except Exception as e:
                log.error("TRANSACTION_FAILURE", nonce=current_nonce, error=str(e), exc_info=True)
                if "nonce too low" in str(e).lower():
                    await self.nonce_manager.resync()
                raise

    async def close(self):
        self.nonce_manager.close()
        await self.redis.aclose()

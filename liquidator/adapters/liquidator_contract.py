# /liquidator/adapters/liquidator_contract.py
# - Operator-side client for a deployed liquidator contract.
# - Encodes calldata for the liquidation and admin entry points and hands it to
#   the TransactionManager; every send is gated by the kill switch.

from web3 import Web3

from liquidator.abis.liquidator import LIQUIDATOR_ABI
from liquidator.core.chain import MAX_UINT256
from liquidator.core.config import VALID_FLASH_FEE_TIERS
from liquidator.core.decorators import retriable_network_call
from liquidator.core.errors import InvalidFeeTier
from liquidator.core.kill import check, KillSwitchActiveError
from liquidator.core.logger import get_logger
from liquidator.core.tx import TransactionManager, TransactionKillSwitchError
from liquidator.routing.codec import decode_envelope

log = get_logger(__name__)


class LiquidatorClient:
    def __init__(self, tx_manager: TransactionManager, liquidator_address: str):
        self.tx_manager = tx_manager
        self.w3 = tx_manager.w3
        self.liquidator_address = Web3.to_checksum_address(liquidator_address)
        self.contract = self.w3.eth.contract(address=self.liquidator_address, abi=LIQUIDATOR_ABI)
        log.info("LIQUIDATOR_CLIENT_INITIALIZED", liquidator=self.liquidator_address)

    def _check_kill_switch(self):
        try:
            check()
        except KillSwitchActiveError:
            raise TransactionKillSwitchError("Liquidator call blocked by system kill switch.")

    async def _send(self, fn_name: str, args: list) -> str:
        self._check_kill_switch()
        data = self.contract.encode_abi(fn_name, args=args)
        return await self.tx_manager.build_and_send_transaction({"to": self.liquidator_address, "data": data})

    # --- liquidation ---

    async def liquidate(self, user: str, collateral_asset: str, debt_asset: str, debt_to_cover: int, min_amount_out: int, routing_data: bytes) -> str:
        """
        Sends `liquidate`. Pass MAX_UINT256 as `debt_to_cover` to let the
        contract cover half of the user's variable debt.
        """
        # Fail before paying gas on a malformed route.
        envelope = decode_envelope(routing_data)
        args = [
            Web3.to_checksum_address(user),
            Web3.to_checksum_address(collateral_asset),
            Web3.to_checksum_address(debt_asset),
            debt_to_cover,
            min_amount_out,
            routing_data,
        ]
        log.info(
            "LIQUIDATION_SUBMITTED",
            user=args[0],
            collateral_asset=args[1],
            debt_asset=args[2],
            debt_to_cover="max" if debt_to_cover == MAX_UINT256 else debt_to_cover,
            adapter_tag=envelope.adapter_tag,
        )
        return await self._send("liquidate", args)

    async def liquidate_with_fee(self, user: str, collateral_asset: str, debt_asset: str, debt_to_cover: int, min_amount_out: int, routing_data: bytes, flash_fee_tier: int) -> str:
        decode_envelope(routing_data)
        args = [
            Web3.to_checksum_address(user),
            Web3.to_checksum_address(collateral_asset),
            Web3.to_checksum_address(debt_asset),
            debt_to_cover,
            min_amount_out,
            routing_data,
            flash_fee_tier,
        ]
        log.info("LIQUIDATION_WITH_FEE_SUBMITTED", user=args[0], debt_asset=args[2], flash_fee_tier=flash_fee_tier)
        return await self._send("liquidateWithFee", args)

    # --- admin ---

    async def set_adapter(self, tag: int, adapter: str) -> str:
        log.warning("SET_ADAPTER_SUBMITTED", tag=tag, adapter=adapter)
        return await self._send("setAdapter", [tag, Web3.to_checksum_address(adapter)])

    async def set_default_flash_fee_tier(self, tier: int) -> str:
        if tier not in VALID_FLASH_FEE_TIERS:
            raise InvalidFeeTier(tier)
        log.info("SET_DEFAULT_FLASH_FEE_TIER_SUBMITTED", tier=tier)
        return await self._send("setDefaultFlashFeeTier", [tier])

    async def rescue_tokens(self, token: str, amount: int, use_entire_balance: bool, recipient: str) -> str:
        log.warning("RESCUE_SUBMITTED", token=token, amount=amount, entire_balance=use_entire_balance, recipient=recipient)
        return await self._send(
            "rescueTokens",
            [Web3.to_checksum_address(token), amount, use_entire_balance, Web3.to_checksum_address(recipient)],
        )

    # --- reads ---

    @retriable_network_call
    async def adapter_for(self, tag: int) -> str:
        return await self.contract.functions.adapters(tag).call()

    @retriable_network_call
    async def owner(self) -> str:
        return await self.contract.functions.owner().call()

    @retriable_network_call
    async def default_flash_fee_tier(self) -> int:
        return await self.contract.functions.defaultFlashFeeTier().call()

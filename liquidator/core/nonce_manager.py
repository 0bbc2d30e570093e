# /liquidator/core/nonce_manager.py
# Durable, process-exclusive nonce for the executor account.
import os
import fcntl

import aiofiles

from liquidator.core.config import settings
from liquidator.core.logger import get_logger

log = get_logger(__name__)


class NonceManager:
    def __init__(self, w3, address: str):
        self.w3 = w3
        self.address = address
        os.makedirs(settings.SESSION_DIR, exist_ok=True)
        self.path = os.path.join(settings.SESSION_DIR, f"nonce.{address.lower()}.lock")
        self._fd = None
        self.nonce = -1

    async def initialize(self) -> int:
        # Held for the process lifetime so a second executor on the same account fails fast.
        self._fd = open(self.path, "a+")
        fcntl.flock(self._fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        async with aiofiles.open(self.path, "r") as f:
            data = (await f.read()).strip()
        if data.isdigit():
            self.nonce = int(data)
            log.info("NONCE_LOADED", nonce=self.nonce, path=self.path)
        else:
            self.nonce = await self.w3.eth.get_transaction_count(self.address)
            log.info("NONCE_FROM_RPC", nonce=self.nonce)
            await self._write()
        return self.nonce

    async def get_nonce(self) -> int:
        return self.nonce

    async def increment(self):
        self.nonce += 1
        await self._write()
        log.debug("NONCE_BUMPED", nonce=self.nonce)

    async def resync(self):
        """Reloads the pending nonce from the node after a rejected broadcast."""
        self.nonce = await self.w3.eth.get_transaction_count(self.address, "pending")
        await self._write()
        log.warning("NONCE_RESYNCED", nonce=self.nonce)

    async def _write(self):
        async with aiofiles.open(self.path, "w") as f:
            await f.write(str(self.nonce))

    def close(self):
        if self._fd:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
            self._fd.close()
            self._fd = None
            log.info("NONCE_LOCK_RELEASED")

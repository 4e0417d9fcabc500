"""Run password KDF work off the event loop with bounded concurrency."""

from __future__ import annotations

import asyncio
import secrets
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import TypeVar

from projectdesk.application.ports.password_hasher_port import PasswordHasherPort

DEFAULT_MAX_CONCURRENCY = 4

_T = TypeVar("_T")


class CredentialService:
    """Async facade over a blocking password hasher.

    Every hash/verify call runs on a dedicated thread pool sized to
    `max_concurrency`. The pool threads are the bound: a cancelled caller
    does not free a worker until its derivation actually finishes, so a burst
    of abandoned login attempts queues instead of exhausting CPU and memory.
    """

    def __init__(
        self,
        *,
        password_hasher: PasswordHasherPort,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be positive")
        self._password_hasher = password_hasher
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrency,
            thread_name_prefix="password-kdf",
        )
        self._decoy_hash: str | None = None
        self._decoy_lock = asyncio.Lock()

    async def hash_password(self, password: str) -> str:
        """Return a freshly salted stored secret for the plaintext password."""

        return await self._run(partial(self._password_hasher.hash_password, password))

    async def verify_password(self, *, password: str, password_hash: str) -> bool:
        """Return whether the plaintext matches the stored secret."""

        return await self._run(
            partial(
                self._password_hasher.verify_password,
                password=password,
                password_hash=password_hash,
            )
        )

    async def verify_decoy(self, password: str) -> bool:
        """Pay the verification cost for a caller with no stored secret; always False."""

        await self.verify_password(password=password, password_hash=await self._get_decoy_hash())
        return False

    def needs_rehash(self, password_hash: str) -> bool:
        return self._password_hasher.needs_rehash(password_hash)

    def shutdown(self) -> None:
        """Stop accepting KDF work; running derivations finish in the background."""

        self._executor.shutdown(wait=False, cancel_futures=True)

    async def _get_decoy_hash(self) -> str:
        async with self._decoy_lock:
            if self._decoy_hash is None:
                self._decoy_hash = await self.hash_password(secrets.token_hex(16))
            return self._decoy_hash

    async def _run(self, call: partial[_T]) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, call)

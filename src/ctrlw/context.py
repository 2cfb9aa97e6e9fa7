"""Process-scoped wiring of the ctrlw core.

AppContext is built once at startup and passed to whatever hosts the core
(a transport, the CLI, tests). It owns the store handles and every
component built on them; there is no module-level connection state.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ctrlw.auth.credentials import CredentialStore, ScryptCredentialStore
from ctrlw.auth.identity_store import JsonIdentityStore, MemoryIdentityStore
from ctrlw.auth.service import TokenService
from ctrlw.auth.tokens import TokenCodec
from ctrlw.config import Config
from ctrlw.retry import store_caller
from ctrlw.sessions.allocator import PairingCodeAllocator
from ctrlw.sessions.manager import SessionManager
from ctrlw.sessions.reaper import ExpiryReaper
from ctrlw.sessions.store import MemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Container for the store handles and the components wired on them.

    Usage:
        context = AppContext.create(config)
        await context.start()

        session = await context.sessions.create()
        result = await context.tokens.register(email, password)

        await context.stop()
    """

    config: Config
    session_store: SessionStore
    identity_store: MemoryIdentityStore
    sessions: SessionManager
    tokens: TokenService
    reaper: ExpiryReaper

    @classmethod
    def create(
        cls,
        config: Config,
        identity_path: Optional[Path] = None,
        persist_identities: bool = True,
        credentials: Optional[CredentialStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> "AppContext":
        """Build every component from configuration.

        Args:
            config: Loaded configuration.
            identity_path: Override the identity JSON file location.
            persist_identities: Keep identities in memory only when False.
            credentials: Override the credential store (default scrypt).
            clock: Returns the current Unix time (injectable for testing).
        """
        call = store_caller(config.store)

        session_store = MemorySessionStore()
        if persist_identities:
            identity_store: MemoryIdentityStore = JsonIdentityStore(
                identity_path or config.identities_path
            )
        else:
            identity_store = MemoryIdentityStore()

        allocator = PairingCodeAllocator(max_retries=config.sessions.max_code_retries)
        sessions = SessionManager(
            store=session_store,
            allocator=allocator,
            ttl_minutes=config.sessions.ttl_minutes,
            clock=clock,
            call=call,
        )
        tokens = TokenService(
            identities=identity_store,
            credentials=credentials or ScryptCredentialStore(),
            codec=TokenCodec.from_config(config.tokens, clock=clock),
            clock=clock,
            call=call,
        )
        reaper = ExpiryReaper(
            store=session_store,
            interval=config.sessions.reaper_interval,
            clock=clock,
            call=call,
        )

        return cls(
            config=config,
            session_store=session_store,
            identity_store=identity_store,
            sessions=sessions,
            tokens=tokens,
            reaper=reaper,
        )

    async def start(self) -> None:
        """Load persisted identities and start the reaper."""
        if isinstance(self.identity_store, JsonIdentityStore):
            await self.identity_store.load()
        await self.reaper.start()
        logger.info("ctrlw core started")

    async def stop(self) -> None:
        """Stop background work."""
        await self.reaper.stop()
        logger.info("ctrlw core stopped")

"""
SSH listener.

Public-key authentication accepts every key; who may paste as which user is
decided per session by the identity registry. Interactive (PTY) sessions get
a usage hint, everything else is ingested as a paste.
"""
import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Set

import asyncssh
import humanize

from pipbin.errors import InvalidSession, PasteTooLarge, PipError, Unauthorized
from pipbin.identity import IdentityRegistry
from pipbin.ingest import IngestionPipeline

logger = logging.getLogger(__name__)


class PasteSSHServer(asyncssh.SSHServer):
    """Per-connection SSH server that records the key each client presents."""

    def __init__(self):
        self._conn = None

    def connection_made(self, conn: asyncssh.SSHServerConnection) -> None:
        self._conn = conn

    def begin_auth(self, username: str) -> bool:
        return True

    def public_key_auth_supported(self) -> bool:
        return True

    def validate_public_key(self, username: str, key: asyncssh.SSHKey) -> bool:
        self._conn.set_extra_info(public_key=key)
        return True


class SessionHandler:
    """Handles one SSH session: greet, then show usage or ingest a paste."""

    def __init__(self, registry: IdentityRegistry, pipeline: IngestionPipeline, usage_hint: str):
        self.registry = registry
        self.pipeline = pipeline
        self.usage_hint = usage_hint
        self.active: Set[asyncio.Task] = set()

    async def __call__(self, process) -> None:
        task = asyncio.current_task()
        self.active.add(task)
        username = process.get_extra_info("username")
        peer = process.get_extra_info("peername")
        started = time.monotonic()
        logger.info(f"{username} connect {peer}")
        try:
            status = await self.handle(process)
        finally:
            self.active.discard(task)
            logger.info(f"{username} disconnect {time.monotonic() - started:.3f}s")
        process.exit(status)

    async def handle(self, process) -> int:
        """Run the session and return its exit status."""
        try:
            resolution = await self._resolve(process)
        except Unauthorized as e:
            self.write(process, e.message)
            return 1
        except PipError as e:
            logger.error(f"Could not get user: {e}")
            self.write(process, e.message)
            return 1

        self.write(process, resolution.message)

        if process.get_terminal_type() is not None:
            self.write(process, "")
            self.write(process, self.usage_hint)
            return 0

        try:
            result = await self.pipeline.ingest(resolution.user, process.stdin)
        except PasteTooLarge as e:
            logger.warning(f"Rejected paste from {resolution.user.name}: {e}")
            self.write(process, e.message)
            return 1
        except PipError as e:
            logger.error(f"Could not create paste: {e}")
            self.write(process, e.message)
            return 1

        self.write(process, "")
        if result.classifier_error:
            self.write(process, result.classifier_error)
        self.write(process, f"Detected language: {result.language}")
        self.write(process, f"Size: {humanize.naturalsize(result.size)}")
        self.write(process, "")
        if result.link_error:
            self.write(process, result.link_error)
        self.write(process, "Paste Saved!")
        self.write(process, f"To view your paste visit: {result.url}")
        return 0

    async def _resolve(self, process):
        username = process.get_extra_info("username") or ""
        key = process.get_extra_info("public_key")
        if key is None:
            raise InvalidSession("no public key on session")
        return await self.registry.resolve_or_register(
            username,
            key.get_fingerprint("sha256"),
            key.get_algorithm(),
        )

    @staticmethod
    def write(process, line: str) -> None:
        process.stdout.write((line + "\n").encode())

    async def drain(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for in-flight sessions, then cancel the rest."""
        if not self.active:
            return
        _, pending = await asyncio.wait(set(self.active), timeout=timeout)
        if pending:
            logger.warning(f"Cancelling {len(pending)} SSH session(s) still running after {timeout}s")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)


def usage_hint(host: str, port: int) -> str:
    return f"To upload a paste simply run:  cat example.md | ssh {host} -p {port}"


def ensure_host_key(path: str) -> None:
    """Generate an ed25519 host key at ``path`` if there is none yet."""
    key_path = Path(path)
    if key_path.exists():
        return
    key_path.parent.mkdir(parents=True, exist_ok=True)
    asyncssh.generate_private_key("ssh-ed25519").write_private_key(str(key_path))
    os.chmod(key_path, 0o600)
    logger.info(f"Generated SSH host key at {key_path}")


async def start_ssh_server(host: str, port: int, host_key_path: str, handler: SessionHandler):
    """Start listening for SSH connections. Returns the asyncssh acceptor."""
    ensure_host_key(host_key_path)
    server = await asyncssh.create_server(
        PasteSSHServer,
        host,
        port,
        server_host_keys=[host_key_path],
        process_factory=handler,
        encoding=None,
    )
    logger.info(f"Starting SSH server on {host}:{port}")
    return server

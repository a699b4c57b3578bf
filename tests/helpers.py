import asyncio
from typing import Dict, List, Optional, Tuple

from redis.exceptions import ConnectionError

from pipbin.database import InMemoryStore


class FakeStream:
    """Byte stream that hands out ``data`` in chunks of at most ``chunk_size``."""

    def __init__(self, data: bytes = b"", chunk_size: int = 7, error: Optional[Exception] = None):
        self.data = data
        self.chunk_size = chunk_size
        self.error = error
        self.reads: List[int] = []

    async def read(self, n: int = -1) -> bytes:
        self.reads.append(n)
        if not self.data and self.error is not None:
            raise self.error
        size = min(n, self.chunk_size) if n >= 0 else len(self.data)
        chunk, self.data = self.data[:size], self.data[size:]
        return chunk


class FailingStore(InMemoryStore):
    """In-memory store whose writes or reads fail for keys with a given prefix."""

    def __init__(self, fail_writes: Tuple[str, ...] = (), fail_reads: Tuple[str, ...] = ()):
        super().__init__()
        self.fail_writes = fail_writes
        self.fail_reads = fail_reads

    async def hset(self, key, field=None, value=None, mapping=None):
        if key.startswith(self.fail_writes):
            raise ConnectionError(f"write to {key} refused")
        return await super().hset(key, field, value, mapping=mapping)

    async def hgetall(self, key):
        if key.startswith(self.fail_reads):
            raise ConnectionError(f"read of {key} refused")
        return await super().hgetall(key)


class FakeKey:
    def __init__(self, fingerprint: str = "SHA256:alice-key", algorithm: str = "ssh-ed25519"):
        self.fingerprint = fingerprint
        self.algorithm = algorithm

    def get_fingerprint(self, hash_name: str = "sha256") -> str:
        return self.fingerprint

    def get_algorithm(self) -> str:
        return self.algorithm


class FakeWriter:
    def __init__(self):
        self.buffer = b""

    def write(self, data: bytes) -> None:
        self.buffer += data

    @property
    def text(self) -> str:
        return self.buffer.decode()


class FakeProcess:
    """Just enough of asyncssh.SSHServerProcess for the session handler."""

    def __init__(self, username: str = "alice", key: Optional[FakeKey] = None, data: bytes = b"",
                 terminal: Optional[str] = None):
        self.extra: Dict[str, object] = {
            "username": username,
            "public_key": key,
            "peername": ("127.0.0.1", 50022),
        }
        self.stdin = FakeStream(data)
        self.stdout = FakeWriter()
        self.terminal = terminal
        self.exit_status: Optional[int] = None

    def get_extra_info(self, name: str, default=None):
        return self.extra.get(name, default)

    def get_terminal_type(self) -> Optional[str]:
        return self.terminal

    def exit(self, status: int) -> None:
        self.exit_status = status


class EndlessStream:
    """Byte stream whose sender never sends anything nor closes."""

    def __init__(self):
        self.reading = asyncio.Event()

    async def read(self, n: int = -1) -> bytes:
        self.reading.set()
        await asyncio.Event().wait()
        return b""

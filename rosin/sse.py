"""Server-Sent-Events line assembler shared by the streaming adapters."""

from collections.abc import AsyncIterable, AsyncIterator

DATA_PREFIX = b"data: "
DONE_SENTINEL = "[DONE]"


class SSELineParser:
    """Incremental `data:` payload extractor.

    Bytes are buffered until a newline. Only lines starting with ``data: `` are
    payloads; ``event:``, ``id:``, ``retry:``, comments and blank lines are
    dropped. The ``[DONE]`` sentinel ends the parse without being returned.
    JSON decoding of payloads is left to the caller.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume a chunk and return every complete payload it finishes."""
        payloads: list[str] = []
        if self.done:
            return payloads
        self._buffer.extend(chunk)
        while not self.done:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            payload = self._payload(line.rstrip(b"\r"))
            if payload is not None:
                payloads.append(payload)
        return payloads

    def finish(self) -> list[str]:
        """Flush a trailing ``data:`` line left by a transport that closed without a newline."""
        if self.done or not self._buffer:
            return []
        line = bytes(self._buffer).rstrip(b"\r")
        self._buffer.clear()
        payload = self._payload(line)
        self.done = True
        return [payload] if payload is not None else []

    def _payload(self, line: bytes) -> str | None:
        if not line.startswith(DATA_PREFIX):
            return None
        payload = line[len(DATA_PREFIX):].decode("utf-8", errors="replace")
        if payload == DONE_SENTINEL:
            self.done = True
            return None
        return payload


async def iter_sse_payloads(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield ``data:`` payloads from a byte stream until ``[DONE]`` or end of input."""
    parser = SSELineParser()
    async for chunk in chunks:
        for payload in parser.feed(chunk):
            yield payload
        if parser.done:
            return
    for payload in parser.finish():
        yield payload

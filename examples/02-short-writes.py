"""
Reliable sends over a short-writing transport

Demonstrates:
- A Transmitter that accepts at most a few bytes per call
- send_all resending the unsent remainder until the buffer is out
- The exact byte count reported when the transport fails midway
"""

import asyncio

from hellostream import HELLO, send_all


class Trickle:
    """Accepts at most ``step`` bytes per call and fails after ``limit`` bytes."""

    def __init__(self, step: int, limit: int | None = None) -> None:
        self.step = step
        self.limit = limit
        self.out = bytearray()

    async def send(self, data: memoryview) -> int:
        if self.limit is not None and len(self.out) >= self.limit:
            raise BrokenPipeError("peer went away")
        chunk = bytes(data[: self.step])
        self.out += chunk
        return len(chunk)


async def main() -> None:
    tx = Trickle(step=3)
    result = await send_all(tx, HELLO)
    print(f"{result.status.value}: {result.bytes_sent} bytes -> {bytes(tx.out)!r}")

    tx = Trickle(step=4, limit=8)
    result = await send_all(tx, HELLO)
    print(f"{result.status.value}: only {result.bytes_sent} bytes ({result.error})")


if __name__ == "__main__":
    asyncio.run(main())

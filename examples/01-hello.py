"""
Hello Server and Clients - One worker per connection

Demonstrates:
- ConnectionServer lifecycle: Idle → Bound → Listening → Accepting
- Several clients fetching the greeting concurrently
- Finished workers reclaimed without blocking the accept loop
"""

import asyncio

from hellostream import ConnectionServer, fetch


async def main() -> None:
    async with ConnectionServer("127.0.0.1", 0) as server:
        port = server.address[1]
        print(f"[server] {server.state.value} on {server.endpoint.host}:{port}")
        serve = asyncio.create_task(server.serve_forever())

        results = await asyncio.gather(*(fetch("localhost", port) for _ in range(5)))
        for i, fetched in enumerate(results):
            print(f"[client {i}] {fetched.endpoint} -> {fetched.data!r}")

        while server.live_workers:
            await asyncio.sleep(0.01)
        print(f"[server] accepted={server.accepted} reclaimed={server.reclaimed}")
        serve.cancel()


if __name__ == "__main__":
    asyncio.run(main())

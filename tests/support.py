"""Test doubles shared by the realtime tests."""
import asyncio


class FakeHandle:
    """Stands in for a WebSocket: records frames and the close code."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.closed_with = None
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


async def wait_for_frames(handle: FakeHandle, count: int, rounds: int = 200) -> list[str]:
    """Let sender tasks run until ``handle`` has ``count`` frames (or give up)."""
    for _ in range(rounds):
        if len(handle.sent) >= count:
            break
        await asyncio.sleep(0)
    return handle.sent

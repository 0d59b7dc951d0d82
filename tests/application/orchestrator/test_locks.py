"""Unit tests for ConversationLockRegistry."""

import asyncio

import pytest

from application.orchestrator import ConversationLockRegistry


class TestConversationLockRegistry:
    """Test per-conversation serialization."""

    @pytest.mark.asyncio
    async def test_same_conversation_is_serialized(self) -> None:
        registry = ConversationLockRegistry()
        order: list[str] = []

        async def turn(name: str) -> None:
            async with registry.hold("conv-1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(turn("a"), turn("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_conversations_do_not_block(self) -> None:
        registry = ConversationLockRegistry()

        async with registry.hold("conv-1"):
            assert registry.is_locked("conv-1")
            async with asyncio.timeout(1):
                async with registry.hold("conv-2"):
                    assert registry.is_locked("conv-2")

        assert not registry.is_locked("conv-1")

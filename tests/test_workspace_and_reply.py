"""Tests for session workspaces and the one-shot reply channel."""

from pathlib import Path

import pytest

from pairgate.pairing.reply import ReplyChannel
from pairgate.pairing.types import PairingReply
from pairgate.workspace import Workspace


# ── Workspace ───────────────────────────────────────────────────────


class TestWorkspace:
    def test_path_derived_from_session_id(self, tmp_path: Path):
        ws = Workspace(tmp_path, "abc123")
        assert ws.path == tmp_path / "abc123"
        assert not ws.exists

    def test_create_makes_root(self, tmp_path: Path):
        ws = Workspace(tmp_path / "nested" / "temp", "s1")
        ws.create()
        assert ws.exists

    def test_remove_is_idempotent(self, tmp_path: Path):
        ws = Workspace(tmp_path, "s1")
        ws.create()
        ws.file("creds.json").write_text("{}")
        (ws.path / "keys").mkdir()

        assert ws.remove() is True
        assert ws.remove() is False
        assert not ws.exists
        assert ws.removals == 1

    def test_remove_absent_is_noop(self, tmp_path: Path):
        ws = Workspace(tmp_path, "never-created")
        assert ws.remove() is False
        assert ws.removals == 0


# ── ReplyChannel ────────────────────────────────────────────────────


class TestReplyChannel:
    @pytest.mark.asyncio
    async def test_first_send_wins(self):
        reply = ReplyChannel()
        assert not reply.sent
        assert reply.send(200, "ABCD-1234") is True
        assert reply.send(500, "late failure") is False
        assert reply.sent
        assert reply.reply == PairingReply(200, "ABCD-1234")

    @pytest.mark.asyncio
    async def test_wait_returns_reply(self):
        reply = ReplyChannel()
        reply.send(401, "denied")
        result = await reply.wait()
        assert result.status == 401
        assert result.to_dict() == {"code": "denied"}
        assert not result.ok

    @pytest.mark.asyncio
    async def test_reply_none_until_sent(self):
        reply = ReplyChannel()
        assert reply.reply is None

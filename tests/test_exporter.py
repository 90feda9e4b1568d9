"""Tests for the credential exporter."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from pairgate.config.schema import BrandingConfig
from pairgate.pairing.exporter import CredentialExporter, build_description
from pairgate.pairing.reply import ReplyChannel
from pairgate.pairing.types import PairingSession, SessionOutcome, SessionState
from pairgate.storage.base import StorageError, strip_locator_prefix
from pairgate.workspace import Workspace

from conftest import USER_JID


async def _open_session(transport, tmp_path: Path):
    workspace = Workspace(tmp_path, "s1")
    workspace.create()
    transport_session = await transport.open_session(workspace)
    session = PairingSession(session_id="s1", phone_number="15551234567", workspace=workspace)
    return session, transport_session


def _exporter(storage, config) -> CredentialExporter:
    return CredentialExporter(
        storage,
        export_config=config.export,
        branding=config.branding,
        locator_prefix=config.storage.locator_prefix,
    )


# ── Success path ────────────────────────────────────────────────────


class TestExportSuccess:
    @pytest.mark.asyncio
    async def test_uploads_once_and_sends_two_messages(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()
        reply = ReplyChannel()

        outcome = await _exporter(storage, config).export(session, ts, reply)

        assert outcome == SessionOutcome.EXPORTED
        assert storage.uploads == [(b'{"registered": true}', f"{USER_JID}.json")]

        assert len(ts.sent) == 2
        (jid1, first, quoted1), (jid2, second, quoted2) = ts.sent
        assert jid1 == jid2 == USER_JID
        assert first.text == "RAHEEM-XMD-3>>>ABC123"
        assert quoted1 is None
        assert quoted2 is not None and quoted2.id == "msg-1"
        assert "BOT SUCCESSFULLY CONNECTED" in second.text
        assert second.link_preview is not None

    @pytest.mark.asyncio
    async def test_tears_down(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()

        await _exporter(storage, config).export(session, ts, ReplyChannel())

        assert ts.close_calls == 1
        assert not session.workspace.exists
        assert session.workspace.removals == 1
        assert session.state == SessionState.COMPLETED
        assert session.user_id == USER_JID

    @pytest.mark.asyncio
    async def test_replies_with_token_when_unreplied(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()
        reply = ReplyChannel()

        await _exporter(storage, config).export(session, ts, reply)
        assert reply.reply.status == 200
        assert reply.reply.code == "ABC123"

    @pytest.mark.asyncio
    async def test_keeps_earlier_reply(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()
        reply = ReplyChannel()
        reply.send(200, "ABCD-1234")

        await _exporter(storage, config).export(session, ts, reply)
        assert reply.reply.code == "ABCD-1234"

    @pytest.mark.asyncio
    async def test_waits_for_late_artifact(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open(creds=False)
        config.export.settle_seconds = 1.0

        async def write_later():
            await asyncio.sleep(0.05)
            ts.write_creds()

        writer = asyncio.create_task(write_later())
        outcome = await _exporter(storage, config).export(session, ts, ReplyChannel())
        await writer

        assert outcome == SessionOutcome.EXPORTED
        assert len(storage.uploads) == 1

    @pytest.mark.asyncio
    async def test_waits_until_credentials_registered(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.write_creds('{"registered": false}')
        ts.open(creds=False)
        config.export.settle_seconds = 1.0
        workspace_at_flush = []

        async def flush_later():
            await asyncio.sleep(0.05)
            workspace_at_flush.append(session.workspace.exists)
            ts.write_creds('{"registered": true}')

        writer = asyncio.create_task(flush_later())
        outcome = await _exporter(storage, config).export(session, ts, ReplyChannel())
        await writer

        assert outcome == SessionOutcome.EXPORTED
        assert workspace_at_flush == [True]
        assert storage.uploads == [(b'{"registered": true}', f"{USER_JID}.json")]

    @pytest.mark.asyncio
    async def test_close_error_keeps_outcome(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()
        ts.fail_close = ConnectionResetError("socket gone")
        reply = ReplyChannel()

        outcome = await _exporter(storage, config).export(session, ts, reply)

        assert outcome == SessionOutcome.EXPORTED
        assert reply.reply.code == "ABC123"
        assert ts.close_calls == 1
        assert not session.workspace.exists


# ── Failure paths ───────────────────────────────────────────────────


class TestExportFailures:
    @pytest.mark.asyncio
    async def test_missing_credentials(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open(creds=False)
        reply = ReplyChannel()

        outcome = await _exporter(storage, config).export(session, ts, reply)

        assert outcome == SessionOutcome.EXPORT_FAILED
        assert reply.reply.status == 500
        assert reply.reply.code == "❗ Connection failed: Credentials file not found."
        assert storage.uploads == []
        assert ts.sent == []
        assert ts.close_calls == 1
        assert not session.workspace.exists
        assert session.state == SessionState.FAILED

    @pytest.mark.asyncio
    async def test_unregistered_credentials_are_not_uploaded(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.write_creds('{"registered": false}')
        ts.open(creds=False)
        reply = ReplyChannel()

        outcome = await _exporter(storage, config).export(session, ts, reply)

        assert outcome == SessionOutcome.EXPORT_FAILED
        assert reply.reply.status == 500
        assert storage.uploads == []
        assert not session.workspace.exists

    @pytest.mark.asyncio
    async def test_upload_failure(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()
        storage.fail = StorageError("quota exceeded")
        reply = ReplyChannel()

        outcome = await _exporter(storage, config).export(session, ts, reply)

        assert outcome == SessionOutcome.EXPORT_FAILED
        assert reply.reply.status == 500
        assert reply.reply.code == "❗ Failed to upload or send messages."
        assert ts.sent == []
        assert ts.close_calls == 1
        assert not session.workspace.exists

    @pytest.mark.asyncio
    async def test_send_failure(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open()
        ts.fail_send = RuntimeError("not connected")
        reply = ReplyChannel()

        outcome = await _exporter(storage, config).export(session, ts, reply)

        assert outcome == SessionOutcome.EXPORT_FAILED
        assert reply.reply.status == 500
        assert len(storage.uploads) == 1
        assert not session.workspace.exists

    @pytest.mark.asyncio
    async def test_failure_does_not_override_sent_reply(self, transport, storage, config, tmp_path):
        session, ts = await _open_session(transport, tmp_path)
        ts.open(creds=False)
        reply = ReplyChannel()
        reply.send(200, "ABCD-1234")

        await _exporter(storage, config).export(session, ts, reply)
        assert reply.reply.status == 200


# ── Helpers ─────────────────────────────────────────────────────────


class TestDescription:
    def test_local_time_and_links(self):
        branding = BrandingConfig()
        now = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
        message = build_description(branding, now)

        # Africa/Dar_es_Salaam is UTC+3
        assert "TIME: *3:00:00 PM*" in message.text
        assert "DATE: 19/10/2026" in message.text
        assert branding.channel_url in message.text
        assert message.link_preview.source_url == branding.repo_url
        assert message.to_dict()["contextInfo"]["externalAdReply"]["title"] == branding.preview_title

    def test_custom_branding(self):
        branding = BrandingConfig(bot_name="ACME", owner="ops", timezone="UTC")
        now = datetime(2026, 1, 2, 9, 5, 7, tzinfo=timezone.utc)
        message = build_description(branding, now)
        assert "BOT NAME: ACME" in message.text
        assert "POWERED BY ops" in message.text
        assert "TIME: *9:05:07 AM*" in message.text


class TestStripLocatorPrefix:
    def test_strips_known_prefix(self):
        assert strip_locator_prefix("https://mega.nz/file/XyZ#key", "https://mega.nz/file/") == "XyZ#key"

    def test_other_locator_unchanged(self):
        assert strip_locator_prefix("s3://bucket/a.json", "https://mega.nz/file/") == "s3://bucket/a.json"

    def test_empty_prefix(self):
        assert strip_locator_prefix("https://x/y", "") == "https://x/y"

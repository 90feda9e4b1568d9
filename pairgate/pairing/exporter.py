"""Credential exporter: archive the credential artifact and notify the account."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from loguru import logger

from pairgate.config.schema import BrandingConfig, ExportConfig
from pairgate.pairing.errors import DeliveryFailed, MissingCredentials
from pairgate.pairing.reply import ReplyChannel
from pairgate.pairing.types import PairingSession, SessionOutcome, SessionState
from pairgate.storage.base import ArchiveStorage, strip_locator_prefix
from pairgate.transport.base import LinkPreview, OutgoingMessage, TransportSession

DESCRIPTION_TEMPLATE = """🟢  *BOT SUCCESSFULLY CONNECTED 🟢!*

╭━━ 『 {bot_name} INITIALIZED 』
┃  ⚡ BOT NAME: {bot_name}
┃  👑 OWNER: {owner}
┃  ⚙️ MODE: *{mode}*
┃  🎯 PREFIX: *{command_prefix}*
┃  ⏳ TIME: *{time}*
┃  📆 DATE: {date}
╰━━━━━━━━━━━━━━━━━━━╯

⚠️ REPORT ANY GLITCHES DIRECTLY TO THE OWNER.

╭──────────────────★
│ POWERED BY {owner}
╰──────────────────★
📢 CHANNEL: Click Here({channel_url})
🛠️ DEPLOY YOUR BOT: GitHub Repo({repo_url})

🔋  SYSTEM STATUS: {bot_name} 100% 🧐  A.I READY • MULTI DEVICE • STABLE RELEASE
"""


def build_description(branding: BrandingConfig, now: datetime | None = None) -> OutgoingMessage:
    """Build the status message sent after the session token."""
    local_now = (now or datetime.now(tz=ZoneInfo("UTC"))).astimezone(ZoneInfo(branding.timezone))
    text = DESCRIPTION_TEMPLATE.format(
        bot_name=branding.bot_name,
        owner=branding.owner,
        mode=branding.mode,
        command_prefix=branding.command_prefix,
        time=local_now.strftime("%I:%M:%S %p").lstrip("0"),
        date=local_now.strftime("%d/%m/%Y"),
        channel_url=branding.channel_url,
        repo_url=branding.repo_url,
    )
    return OutgoingMessage(
        text=text,
        link_preview=LinkPreview(
            title=branding.preview_title,
            thumbnail_url=branding.thumbnail_url,
            source_url=branding.repo_url,
        ),
    )


def _is_registered(path: Path) -> bool:
    """Whether ``path`` holds credentials that finished registration."""
    try:
        creds = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return False
    return isinstance(creds, dict) and bool(creds.get("registered"))


class CredentialExporter:
    """
    Runs once per session, after the connection opened.

    Waits for the credential artifact, uploads it, sends the derived token
    to the account itself followed by a status message quoting it, then
    tears the session down. Export is never retried.
    """

    def __init__(
        self,
        storage: ArchiveStorage,
        export_config: ExportConfig,
        branding: BrandingConfig,
        locator_prefix: str = "",
    ):
        self.storage = storage
        self.export_config = export_config
        self.branding = branding
        self.locator_prefix = locator_prefix

    async def wait_for_artifact(self, path: Path) -> bool:
        """
        Poll until ``path`` holds registered credentials or the settle timeout passes.

        Credentials are rewritten on every update, so an existing file may
        still predate registration.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.export_config.settle_seconds
        while True:
            if _is_registered(path):
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(self.export_config.poll_interval_seconds, remaining))

    async def export(
        self,
        session: PairingSession,
        transport_session: TransportSession,
        reply: ReplyChannel,
    ) -> SessionOutcome:
        session.transition(SessionState.EXPORTING)
        artifact = session.workspace.file(self.export_config.credentials_filename)

        try:
            if not await self.wait_for_artifact(artifact):
                error = MissingCredentials(str(artifact))
                if artifact.is_file():
                    logger.error(f"Credentials at {artifact} never became registered")
                else:
                    logger.error(f"Credentials not found at {artifact}")
                reply.send(error.status, error.reply_message)
                session.transition(SessionState.FAILED)
                return SessionOutcome.EXPORT_FAILED

            try:
                token = await self._deliver(session, transport_session, artifact)
            except Exception as e:
                error = DeliveryFailed(str(e))
                logger.error(f"Upload or message delivery failed for session {session.session_id}: {e}")
                reply.send(error.status, error.reply_message)
                session.transition(SessionState.FAILED)
                return SessionOutcome.EXPORT_FAILED

            reply.send(200, token)
            session.transition(SessionState.COMPLETED)
            logger.info(f"👤 {session.user_id} connected ✅ session {session.session_id} exported")
            return SessionOutcome.EXPORTED
        finally:
            try:
                await transport_session.close_quietly()
            finally:
                session.workspace.remove()

    async def _deliver(
        self,
        session: PairingSession,
        transport_session: TransportSession,
        artifact: Path,
    ) -> str:
        user_id = transport_session.user_id
        if not user_id:
            raise DeliveryFailed("connection opened without a user id")
        session.user_id = user_id

        with open(artifact, "rb") as f:
            locator = await self.storage.upload(f, f"{user_id}.json")
        token = strip_locator_prefix(locator, self.locator_prefix)

        first = await transport_session.send_message(
            user_id,
            OutgoingMessage(text=f"{self.branding.session_prefix}>>>{token}"),
        )
        await transport_session.send_message(user_id, build_description(self.branding), quoted=first)
        await asyncio.sleep(self.export_config.flush_seconds)
        return token

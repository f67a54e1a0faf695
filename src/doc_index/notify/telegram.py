"""Telegram bot replies for the search bridge"""

import html
import logging
from typing import Optional, Sequence
from urllib.parse import quote

import aiohttp

from doc_index.config import TelegramConfig
from doc_index.models import FileSummary
from doc_index.utils.cli_utils import format_size_mb

logger = logging.getLogger(__name__)


class TelegramSendError(Exception):
    """Raised when sendMessage does not answer ok"""
    pass


def file_link(base_url: str, file_id: str, token: str) -> str:
    """Direct link that carries the team secret, for clients without cookies."""
    return f"{base_url.rstrip('/')}/api/file/{quote(file_id)}?token={quote(token, safe='')}"


def format_search_reply(query: str, hits: Sequence[FileSummary], base_url: str, token: str) -> str:
    """HTML reply listing the hits with pre-authorized links."""
    q = html.escape(query)
    if not hits:
        return f'🔍 No files found for "<b>{q}</b>".'

    lines = [f"📂 Found {len(hits)} file{'s' if len(hits) != 1 else ''}:", ""]
    for f in hits:
        link = html.escape(file_link(base_url, f.id, token), quote=True)
        lines.append(f"📄 <b>{html.escape(f.filename)}</b> ({format_size_mb(f.size)})")
        lines.append(f'🔗 <a href="{link}">View / download</a>')
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class TelegramNotifier:
    """Posts messages through the Bot API sendMessage method."""

    def __init__(self, cfg: TelegramConfig):
        self.api_base = cfg.api_base.rstrip("/")
        self._token = cfg.bot_token
        self._timeout = aiohttp.ClientTimeout(total=cfg.timeout)

    @property
    def enabled(self) -> bool:
        return bool(self._token)

    async def send_message(self, chat_id: int | str, text: str, parse_mode: Optional[str] = "HTML") -> None:
        if not self.enabled:
            logger.warning("Telegram bot token is not configured; reply dropped")
            return

        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(f"{self.api_base}/bot{self._token}/sendMessage", json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    raise TelegramSendError(f"sendMessage returned {response.status}: {body[:200]}")

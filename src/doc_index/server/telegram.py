import logging
from typing import Annotated, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request

from doc_index.client import DocIndexClient
from doc_index.config import DocIndexConfig
from doc_index.notify.telegram import TelegramNotifier, format_search_reply
from .auth import get_client, get_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["telegram"])

ACK = {"ok": True}
# Hits per chat reply; the setting can lower it, never raise it
BRIDGE_LIMIT = 10


def get_notifier(request: Request) -> TelegramNotifier:
    return request.app.state.notifier


def parse_query(update: object) -> Optional[Tuple[int | str, str]]:
    """(chat id, query) from a text message update, None for anything else."""
    if not isinstance(update, dict):
        return None
    message = update.get("message")
    if not isinstance(message, dict):
        return None
    chat = message.get("chat")
    text = message.get("text")
    if not isinstance(chat, dict) or not isinstance(text, str) or not text.strip():
        return None
    chat_id = chat.get("id")
    if isinstance(chat_id, bool) or not isinstance(chat_id, (int, str)):
        return None
    return chat_id, text.strip()


async def answer_search(
    client: DocIndexClient,
    notifier: TelegramNotifier,
    chat_id: int | str,
    query: str,
    base_url: str,
    token: str,
    limit: int,
) -> None:
    """Runs the search and posts the reply. Never raises: the webhook was already acknowledged."""
    try:
        hits = await client.search(query, limit=limit)
        text = format_search_reply(query, hits, base_url, token)
        await notifier.send_message(chat_id, text)
        logger.info(f"Answered chat {chat_id} with {len(hits)} hits")
    except Exception:
        logger.exception(f"Telegram reply to chat {chat_id} failed")


@router.post("/telegram")
async def telegram_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    client: Annotated[DocIndexClient, Depends(get_client)],
    config: Annotated[DocIndexConfig, Depends(get_config)],
    notifier: Annotated[TelegramNotifier, Depends(get_notifier)],
    secret: Annotated[Optional[str], Header(alias="X-Telegram-Bot-Api-Secret-Token")] = None,
):
    """
    Bot update hook. Always acknowledged with {"ok": true} so the platform
    does not redeliver; the reply itself is sent in the background.
    """
    expected = config.telegram.webhook_secret
    if expected and secret != expected:
        logger.warning("Telegram update with a wrong secret token ignored")
        return ACK

    try:
        update = await request.json()
    except ValueError:
        logger.warning("Telegram update is not JSON")
        return ACK

    parsed = parse_query(update)
    if parsed is None:
        logger.debug("Telegram update without a text message ignored")
        return ACK
    chat_id, query = parsed

    base_url = config.public_base_url or str(request.base_url)
    background_tasks.add_task(
        answer_search,
        client,
        notifier,
        chat_id,
        query,
        base_url,
        config.auth.team_password,
        min(config.telegram.max_results, BRIDGE_LIMIT),
    )
    return ACK

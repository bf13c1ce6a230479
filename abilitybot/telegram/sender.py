"""Outbound side of the Telegram Bot API.

Key classes:
    MessageSender: Abstract interface the bot talks to.
    TelegramSender: aiohttp implementation against api.telegram.org.
    SilentSender: Wrapper that logs failures and returns None instead
        of raising, used for notices whose delivery is best-effort.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from ..exceptions import TelegramApiError
from .types import ChatMember, File, Message, Update

logger = structlog.get_logger("abilitybot.sender")

DEFAULT_API_URL = "https://api.telegram.org"


class MessageSender(ABC):
    """Operations the bot performs against the chat platform."""

    @abstractmethod
    async def send_message(
        self, chat_id: int, text: str, *, force_reply: bool = False
    ) -> Message:
        ...

    @abstractmethod
    async def get_chat_administrators(self, chat_id: int) -> List[ChatMember]:
        ...

    @abstractmethod
    async def send_document(
        self, chat_id: int, document: Path, *, caption: Optional[str] = None
    ) -> Message:
        ...

    @abstractmethod
    async def get_file(self, file_id: str) -> File:
        ...

    @abstractmethod
    async def download_file(self, file: File) -> bytes:
        ...

    @abstractmethod
    async def get_updates(self, offset: Optional[int], timeout: int) -> List[Update]:
        ...

    async def close(self) -> None:
        """Release transport resources."""


class TelegramSender(MessageSender):
    """MessageSender backed by the HTTPS Bot API.

    Args:
        token: Bot token from BotFather.
        api_url: Base API URL (override for a local Bot API server).
        request_timeout: Seconds allowed for ordinary calls. Long polls
            add their own poll timeout on top.
    """

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        request_timeout: int = 30,
    ):
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _method_url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._token}/{method}"

    async def _call(
        self,
        method: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        data: Optional[aiohttp.FormData] = None,
        timeout: Optional[int] = None,
    ) -> Any:
        """POST a Bot API method and return its ``result`` field.

        Raises:
            TelegramApiError: On ok=false, a non-JSON body or an HTTP
                error status.
        """
        client_timeout = aiohttp.ClientTimeout(total=timeout or self._request_timeout)
        kwargs: Dict[str, Any] = {"timeout": client_timeout}
        if data is not None:
            kwargs["data"] = data
        else:
            kwargs["json"] = payload or {}

        async with self.session.post(self._method_url(method), **kwargs) as resp:
            try:
                body = await resp.json()
            except (aiohttp.ContentTypeError, ValueError):
                text = await resp.text()
                raise TelegramApiError(
                    f"Non-JSON response: {text[:200]}",
                    method=method,
                    error_code=resp.status,
                )

        if not body.get("ok"):
            raise TelegramApiError(
                body.get("description", "Unknown error"),
                method=method,
                error_code=body.get("error_code", resp.status),
            )
        return body.get("result")

    async def send_message(
        self, chat_id: int, text: str, *, force_reply: bool = False
    ) -> Message:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if force_reply:
            payload["reply_markup"] = {"force_reply": True}
        result = await self._call("sendMessage", payload)
        return Message.model_validate(result)

    async def get_chat_administrators(self, chat_id: int) -> List[ChatMember]:
        result = await self._call("getChatAdministrators", {"chat_id": chat_id})
        return [ChatMember.model_validate(m) for m in result or []]

    async def send_document(
        self, chat_id: int, document: Path, *, caption: Optional[str] = None
    ) -> Message:
        form = aiohttp.FormData()
        form.add_field("chat_id", str(chat_id))
        if caption:
            form.add_field("caption", caption)
        form.add_field(
            "document",
            document.read_bytes(),
            filename=document.name,
            content_type="application/octet-stream",
        )
        result = await self._call("sendDocument", data=form)
        return Message.model_validate(result)

    async def get_file(self, file_id: str) -> File:
        result = await self._call("getFile", {"file_id": file_id})
        return File.model_validate(result)

    async def download_file(self, file: File) -> bytes:
        if not file.file_path:
            raise TelegramApiError("File has no file_path", method="downloadFile")
        url = f"{self._api_url}/file/bot{self._token}/{file.file_path}"
        timeout = aiohttp.ClientTimeout(total=self._request_timeout)
        async with self.session.get(url, timeout=timeout) as resp:
            if resp.status != 200:
                raise TelegramApiError(
                    "File download failed", method="downloadFile", error_code=resp.status
                )
            return await resp.read()

    async def get_updates(self, offset: Optional[int], timeout: int) -> List[Update]:
        payload: Dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            payload["offset"] = offset
        result = await self._call(
            "getUpdates", payload, timeout=timeout + self._request_timeout
        )
        return [Update.model_validate(u) for u in result or []]

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()


class SilentSender:
    """Best-effort facade over a MessageSender.

    Every method logs the failure and returns None instead of raising,
    so a lost notice or an unreachable admin list never aborts the
    dispatch of an update.
    """

    _ERRORS = (TelegramApiError, aiohttp.ClientError, asyncio.TimeoutError)

    def __init__(self, sender: MessageSender):
        self.sender = sender

    async def send(self, text: str, chat_id: int) -> Optional[Message]:
        try:
            return await self.sender.send_message(chat_id, text)
        except self._ERRORS as e:
            logger.warning("silent_send_failed", chat_id=chat_id, error=str(e))
            return None

    async def force_reply(self, text: str, chat_id: int) -> Optional[Message]:
        try:
            return await self.sender.send_message(chat_id, text, force_reply=True)
        except self._ERRORS as e:
            logger.warning("silent_force_reply_failed", chat_id=chat_id, error=str(e))
            return None

    async def get_chat_administrators(self, chat_id: int) -> Optional[List[ChatMember]]:
        try:
            return await self.sender.get_chat_administrators(chat_id)
        except self._ERRORS as e:
            logger.warning("chat_admins_lookup_failed", chat_id=chat_id, error=str(e))
            return None

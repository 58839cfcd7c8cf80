"""Streams a harvested video back to the client."""
import logging
import mimetypes
from typing import Any, Callable

from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool
from starlette.types import Message, Receive, Scope, Send

from .automation import DownloadSession

_logger = logging.getLogger("smhelper")

DEFAULT_MEDIA_TYPE = "video/mp4"


def guess_media_type(filename: str) -> str:
    media_type, _ = mimetypes.guess_type(filename)
    return media_type or DEFAULT_MEDIA_TYPE


def is_final_body(message: Message) -> bool:
    if message["type"] == "http.response.pathsend":
        return True
    return message["type"] == "http.response.body" and not message.get("more_body", False)


class DeliveryResponse(FileResponse):
    """
    File response that charges quota only after the body was fully sent.

    ``on_delivered`` runs once the last chunk was handed to the server and no
    ``http.disconnect`` arrived before it. Starlette answers a disconnect by
    cancelling the file stream and returning normally. A send failure skips
    the charge and propagates. The session's files are removed either way.
    """

    def __init__(self, session: DownloadSession, on_delivered: Callable[[], Any]):
        if session.artifact_path is None:
            raise ValueError(f"Session {session.session_id} has no artifact to deliver")
        super().__init__(
            path=str(session.artifact_path),
            filename=session.artifact_path.name,
            media_type=guess_media_type(session.artifact_path.name),
        )
        self.session = session
        self.on_delivered = on_delivered

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        completed = False
        disconnected = False

        async def watch_receive() -> Message:
            nonlocal disconnected
            message = await receive()
            if message["type"] == "http.disconnect" and not completed:
                disconnected = True
            return message

        async def watch_send(message: Message) -> None:
            nonlocal completed
            await send(message)
            if is_final_body(message) and not disconnected:
                completed = True

        try:
            _logger.info("Streaming file to client session_id=%s name=%s", self.session.session_id, self.session.artifact_path.name)
            await super().__call__(scope, watch_receive, watch_send)
        except Exception:
            _logger.exception("Error sending file session_id=%s", self.session.session_id)
            raise
        else:
            if completed:
                _logger.info("File sent successfully, decrementing usage session_id=%s", self.session.session_id)
                await run_in_threadpool(self.on_delivered)
            else:
                _logger.warning("Client disconnected before the file was sent, usage not charged session_id=%s", self.session.session_id)
        finally:
            self.session.cleanup()
            _logger.info("Temporary file deleted session_id=%s", self.session.session_id)


def deliver_artifact(session: DownloadSession, on_delivered: Callable[[], Any]) -> DeliveryResponse:
    return DeliveryResponse(session, on_delivered)

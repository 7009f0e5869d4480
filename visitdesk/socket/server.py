import socketio

from visitdesk.core.config import get_settings
from visitdesk.socket.events import register_socket_events

settings = get_settings()

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if settings.DEBUG else list(settings.cors_origins),
    logger=False,
    engineio_logger=False,
)

register_socket_events(sio)

from aiohttp import ClientSession, ClientTimeout, TCPConnector
from fastapi import Request

from rafin.internal.env_settings import Settings


def create_client_session(settings: Settings | None = None) -> ClientSession:
    settings = settings or Settings()
    return ClientSession(
        timeout=ClientTimeout(total=settings.lookup.request_timeout),
        # a handful of hosts at most; keep the per-site burst small
        connector=TCPConnector(limit_per_host=4),
    )


async def get_connection(request: Request) -> ClientSession:
    """The application's shared outbound HTTP session."""
    return request.app.state.client_session

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def whatsapp_client():
    """Mock WhatsApp transport that accepts every message."""
    client = AsyncMock()
    client.send_text.return_value = {"messages": [{"id": "wamid.TEST"}]}
    client.send_interactive_cta_url.return_value = {"messages": [{"id": "wamid.CTA"}]}
    return client


import asyncio
import json

import pytest

from errors import (
    ConfigError,
    DataError,
    ErrorCategory,
    ErrorHandler,
    NetworkError,
    StreamConversionError,
    TMDBAPIError,
)


class ConnectionResetThing(Exception):
    pass


@pytest.fixture
def handler():
    return ErrorHandler(bot=None)


@pytest.mark.parametrize(
    "error, category",
    [
        (TMDBAPIError("down"), ErrorCategory.TMDB),
        (StreamConversionError("no playlist"), ErrorCategory.STREAMING),
        (NetworkError("timeout"), ErrorCategory.NETWORK),
        (DataError("bad"), ErrorCategory.DATA),
        (ConfigError("missing"), ErrorCategory.CONFIG),
        (ConnectionResetThing(), ErrorCategory.NETWORK),
        (json.JSONDecodeError("x", "doc", 0), ErrorCategory.DATA),
        (RuntimeError("boom"), ErrorCategory.UNCATEGORIZED),
    ],
)
def test_categorize_error(handler, error, category):
    assert handler.categorize_error(error) is category


def test_build_embed_prefers_explicit_message(handler):
    embed = handler.build_embed(TMDBAPIError("status 500"), "TMDB is unavailable.")
    assert embed.title == "🎬 TMDB Error"
    assert embed.description == "TMDB is unavailable."

    assert handler.build_embed(RuntimeError("")).description == "Something went wrong."


class FakeResponse:
    def __init__(self, done):
        self.done = done
        self.sent = []

    def is_done(self):
        return self.done

    async def send_message(self, **kwargs):
        self.sent.append(kwargs)


class FakeFollowup:
    def __init__(self):
        self.sent = []

    async def send(self, **kwargs):
        self.sent.append(kwargs)


class FakeInteraction:
    def __init__(self, done):
        self.response = FakeResponse(done)
        self.followup = FakeFollowup()


def test_handle_error_uses_followup_after_defer(handler):
    interaction = FakeInteraction(done=True)
    asyncio.run(handler.handle_error(interaction, DataError("bad payload")))

    assert interaction.response.sent == []
    assert interaction.followup.sent[0]["ephemeral"] is True


def test_handle_error_responds_directly(handler):
    interaction = FakeInteraction(done=False)
    asyncio.run(handler.handle_error(interaction, ConfigError("missing")))

    assert interaction.followup.sent == []
    assert interaction.response.sent[0]["embed"].title == "⚙️ Configuration Error"


def test_setup_registers_command_error_hook():
    class FakeBot:
        def __init__(self):
            self.events = {}

        def event(self, coro):
            self.events[coro.__name__] = coro
            return coro

    bot = FakeBot()
    ErrorHandler(bot).setup()
    assert "on_application_command_error" in bot.events

# link_issuer.py

import logging
import re
import secrets
from dataclasses import dataclass
from typing import Optional

from bot_config import BotConfig
from errors import ConfigError
from session_store import MediaType, TemporaryRecord, TemporaryRecordStore
from utilities import encode_uri_component

# Configure logging for this module
logger = logging.getLogger("watchbot.link_issuer")
logger.setLevel(logging.INFO)


@dataclass(frozen=True)
class IssuedLink:
    watch_url: str
    token: str

    def to_dict(self):
        return {"watchUrl": self.watch_url, "token": self.token}


def slugify(title: str) -> str:
    """Lowercase, whitespace runs to dashes, then URI-component encoded."""
    return encode_uri_component(re.sub(r"\s+", "-", (title or "").lower()))


def new_token() -> str:
    return secrets.token_hex(BotConfig.TOKEN_BYTES)


def new_fragment() -> str:
    return secrets.token_hex(BotConfig.FRAGMENT_BYTES)


class LinkIssuer:
    """Mints watch links backed by short-lived records in the session store."""

    def __init__(self, store: TemporaryRecordStore, base_url: str, ttl: float = BotConfig.LINK_TTL):
        if not base_url:
            raise ConfigError("A base URL is required to issue watch links.")
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.ttl = ttl

    def create_stream_link(
        self,
        media_type: MediaType,
        external_id: str,
        title: str,
        season_num: Optional[int] = None,
        episode_num: Optional[int] = None,
    ) -> IssuedLink:
        return self._issue(media_type, external_id, title, season_num, episode_num, is_backup=False)

    def create_backup_link(
        self,
        media_type: MediaType,
        external_id: str,
        title: str,
        season_num: Optional[int] = None,
        episode_num: Optional[int] = None,
    ) -> IssuedLink:
        return self._issue(media_type, external_id, title, season_num, episode_num, is_backup=True)

    def _issue(self, media_type, external_id, title, season_num, episode_num, is_backup: bool) -> IssuedLink:
        token = new_token()
        fragment = new_fragment()
        record = TemporaryRecord(
            media_type=media_type,
            external_id=str(external_id),
            title=title or "",
            season_num=season_num,
            episode_num=episode_num,
            is_backup=is_backup,
        )
        self.store.put(token, record, self.ttl)

        prefix = "backup-" if is_backup else ""
        watch_url = f"{self.base_url}/{prefix}{fragment}-{slugify(title)}?token={token}"
        logger.info(f"Issued {'backup' if is_backup else 'primary'} link for {media_type.value} {external_id}")
        logger.debug(f"watchUrl -> {watch_url}")
        return IssuedLink(watch_url=watch_url, token=token)

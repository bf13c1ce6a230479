"""Localized message bundles.

Bundles are YAML files in ``abilitybot/locales``: ``messages.yaml`` is
the root bundle and ``messages_<lang>.yaml`` holds a translation. A
language code such as ``es-MX`` falls back to ``es`` and then to the
root bundle, key by key.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

import structlog
import yaml

logger = structlog.get_logger("abilitybot.bot")

LOCALES_DIR = Path(__file__).parent / "locales"

# Message codes
CHECK_PRIVACY_FAIL = "checkPrivacyFail"
CHECK_LOCALITY_FAIL = "checkLocalityFail"
CHECK_INPUT_FAIL = "checkInputFail"
USER_NOT_FOUND = "userNotFound"
ABILITY_COMMANDS_NOT_FOUND = "ability.commands.notFound"
ABILITY_CLAIM_SUCCESS = "ability.claim.success"
ABILITY_RECOVER_SUCCESS = "ability.recover.success"
ABILITY_RECOVER_FAIL = "ability.recover.fail"
ABILITY_RECOVER_MESSAGE = "ability.recover.message"
ABILITY_BAN_SUCCESS = "ability.ban.success"
ABILITY_BAN_FAIL = "ability.ban.fail"
ABILITY_BAN_CREATOR = "ability.ban.creator"
ABILITY_UNBAN_SUCCESS = "ability.unban.success"
ABILITY_UNBAN_FAIL = "ability.unban.fail"
ABILITY_PROMOTE_SUCCESS = "ability.promote.success"
ABILITY_PROMOTE_FAIL = "ability.promote.fail"
ABILITY_DEMOTE_SUCCESS = "ability.demote.success"
ABILITY_DEMOTE_FAIL = "ability.demote.fail"


@lru_cache(maxsize=None)
def _load_bundle(language: Optional[str]) -> Dict[str, str]:
    """Load one bundle; an unknown language yields an empty dict."""
    filename = "messages.yaml" if not language else f"messages_{language}.yaml"
    path = LOCALES_DIR / filename
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _candidates(language_code: Optional[str]):
    if language_code:
        normalized = language_code.replace("-", "_").lower()
        yield normalized
        if "_" in normalized:
            yield normalized.split("_", 1)[0]
    yield None


def get_localized_message(
    message_code: str, language_code: Optional[str] = None, *arguments
) -> str:
    """Look up ``message_code`` for the language and format it.

    Args:
        message_code: Key in the bundle (see module constants).
        language_code: IETF tag from the Telegram user, e.g. "en" or "es-MX".
        *arguments: Positional values for ``{0}``, ``{1}``, ...

    Raises:
        KeyError: If the root bundle lacks the code.
    """
    for language in _candidates(language_code):
        template = _load_bundle(language).get(message_code)
        if template is not None:
            return template.format(*arguments)
    logger.error("missing_message_code", code=message_code)
    raise KeyError(message_code)

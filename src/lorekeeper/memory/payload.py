"""Parse the model's reply into a world-update payload, if it is one."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from lorekeeper.models.world import WorldUpdatePayload

logger = logging.getLogger(__name__)


def parse_world_update_payload(raw: str) -> WorldUpdatePayload | None:
    """Return the validated payload, or None for plain-text / malformed replies.

    Plain conversational text is the common case, so nothing here raises.
    Lists missing from ``world_updates`` come back empty.
    """
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        return None

    try:
        return WorldUpdatePayload.model_validate(parsed)
    except ValidationError as e:
        logger.debug("Reply is JSON but not a world-update payload: %s", e.error_count())
        return None
    except RecursionError:
        logger.debug("Reply JSON is nested too deeply to validate")
        return None

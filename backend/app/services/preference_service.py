"""Validation and updates of personal ranking preferences."""

import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from app.schemas.records import UserPreferences
from app.schemas.recommendation import PreferencesUpdate
from app.services.exceptions import PreferencesValidationError
from app.services.recommendation_store import RecommendationStore

logger = logging.getLogger(__name__)


def parse_preferences_update(payload: Any) -> PreferencesUpdate:
    """Validate a raw request body, collecting every problem into one error."""
    if not isinstance(payload, dict) or not payload:
        raise PreferencesValidationError(["At least one preference field is required"])
    try:
        update = PreferencesUpdate.model_validate(payload)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "body"
            errors.append(f"{location}: {error['msg']}")
        raise PreferencesValidationError(errors) from e
    if not update.model_dump(exclude_none=True):
        raise PreferencesValidationError(["At least one preference field is required"])
    return update


def apply_update(preferences: UserPreferences, update: PreferencesUpdate) -> UserPreferences:
    changes = update.model_dump(exclude_none=True)
    return preferences.model_copy(update=changes)


async def update_preferences(store: RecommendationStore, user_id: UUID, update: PreferencesUpdate) -> UserPreferences:
    current = await store.get_preferences(user_id)
    updated = apply_update(current, update)
    saved = await store.save_preferences(updated)
    logger.info("Updated recommendation preferences for user %s (%s)", user_id, ", ".join(sorted(update.model_fields_set)))
    return saved

"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends

from starpath.config.settings import get_settings
from starpath.core.interfaces import ModerationGateway
from starpath.moderation.client import HttpModerationGateway


def get_moderation_gateway() -> ModerationGateway:
    """Moderation adapter used for audio assignments; overridable in tests."""
    return HttpModerationGateway(get_settings())


Moderation = Annotated[ModerationGateway, Depends(get_moderation_gateway)]

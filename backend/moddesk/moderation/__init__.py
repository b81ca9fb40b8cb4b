"""Moderation package integration helpers exposed to the application."""

from moddesk.moderation.api import router
from moddesk.moderation.domain.container import configure, configure_postgres

__all__ = ["router", "configure", "configure_postgres"]

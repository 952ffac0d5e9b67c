"""
Database models - import all models here so Alembic can discover them.
"""
from pushtomemory.models.webhook_registration import WebhookRegistration
from pushtomemory.models.push_reflection import PushReflection

__all__ = [
    "WebhookRegistration",
    "PushReflection",
]

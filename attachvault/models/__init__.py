"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from attachvault.models.task import Task  # noqa: F401
from attachvault.models.attachment import Attachment  # noqa: F401

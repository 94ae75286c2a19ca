"""Request/response models for the YouTube analytics endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DisconnectRequest(_CamelModel):
    # Entries that are not non-empty strings are ignored
    channel_names: list[Any] | None = None


class DisconnectResponse(_CamelModel):
    ok: bool = True
    remaining: int


class RefreshEnqueuedResponse(_CamelModel):
    ok: bool = True
    job_id: str
    status: str
    deduped: bool

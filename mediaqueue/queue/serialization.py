"""
Job base class, job registry and payload codec.

A payload is compact JSON carrying an explicit type tag:

    {"data": {...}, "job_type": "encode_video"}

The tag is looked up in an explicit registry filled by ``@register_job``,
so decoding never imports or reflects on arbitrary class paths. Keys are
sorted so that two equal jobs always produce byte-identical payloads,
which is what duplicate detection on enqueue compares.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from mediaqueue.constants import DEFAULT_PRIORITY, QUEUE_DEFAULT
from mediaqueue.exceptions import JobDeserializationError, JobSerializationError

logger = logging.getLogger(__name__)

JOB_TYPE_KEY = "job_type"
DATA_KEY = "data"


class ShouldQueue(BaseModel, ABC):
    """
    Base class for anything that can be dispatched onto the queue.

    Subclasses declare their fields as pydantic fields, pick a queue and
    priority through class attributes, and implement ``handle``.

    Example:
        @register_job("fanart_images")
        class FanArtImagesJob(ShouldQueue):
            queue_name: ClassVar[str] = "image"
            priority: ClassVar[int] = 2

            artist_id: str

            async def handle(self) -> None:
                ...
    """

    model_config = ConfigDict(extra="ignore")

    queue_name: ClassVar[str] = QUEUE_DEFAULT
    priority: ClassVar[int] = DEFAULT_PRIORITY

    @abstractmethod
    async def handle(self) -> None:
        """Execute the job. Raising marks the attempt as failed."""


J = TypeVar("J", bound=type[BaseModel])

# Job registry: type tag -> class
_registry: dict[str, type[BaseModel]] = {}
# Reverse lookup: class -> type tag
_tags: dict[type[BaseModel], str] = {}


def register_job(job_type: str) -> Callable[[J], J]:
    """
    Decorator to register a job class under a type tag.

    Args:
        job_type: The tag written into payloads for this class.

    Returns:
        Decorator function.
    """

    def decorator(cls: J) -> J:
        existing = _registry.get(job_type)
        if existing is not None and existing is not cls:
            raise ValueError(
                f"Job type {job_type!r} already registered to {existing.__qualname__}"
            )
        _registry[job_type] = cls
        _tags[cls] = job_type
        logger.debug(f"Registered job type: {job_type}")
        return cls

    return decorator


def get_job_class(job_type: str) -> type[BaseModel] | None:
    """
    Get the class registered for a type tag.

    Args:
        job_type: The type tag.

    Returns:
        The job class or None if not found.
    """
    return _registry.get(job_type)


def get_job_type(job: BaseModel) -> str | None:
    """Get the type tag of a job instance, or None if its class is unregistered."""
    return _tags.get(type(job))


def list_job_types() -> list[str]:
    """List all registered job type tags."""
    return list(_registry.keys())


def serialize_job(job: BaseModel) -> str:
    """
    Turn a job into its payload string.

    Args:
        job: A registered job instance.

    Returns:
        The payload string.

    Raises:
        JobSerializationError: If the class is unregistered or the fields
            cannot be encoded.
    """
    job_type = get_job_type(job)
    if job_type is None:
        raise JobSerializationError(
            f"Job class {type(job).__qualname__} is not registered; use @register_job"
        )

    try:
        data = job.model_dump(mode="json")
        return json.dumps(
            {JOB_TYPE_KEY: job_type, DATA_KEY: data},
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
    except (TypeError, ValueError) as e:
        raise JobSerializationError(
            f"Failed to serialize {type(job).__qualname__}: {e}"
        ) from e


def deserialize_job(payload: str) -> BaseModel:
    """
    Rebuild a job from its payload string.

    The result is an instance of whatever class the tag names; callers
    that need something executable must check it is a ``ShouldQueue``.

    Args:
        payload: The payload string.

    Returns:
        The reconstructed job instance.

    Raises:
        JobDeserializationError: If the payload is malformed, the tag is
            unknown, or the data does not validate.
    """
    try:
        document: Any = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise JobDeserializationError(f"Payload is not valid JSON: {e}", payload) from e

    if not isinstance(document, dict) or JOB_TYPE_KEY not in document:
        raise JobDeserializationError(f"Payload has no {JOB_TYPE_KEY!r} tag", payload)

    job_type = document[JOB_TYPE_KEY]
    if not isinstance(job_type, str):
        raise JobDeserializationError(f"Job type tag must be a string: {job_type!r}", payload)

    cls = _registry.get(job_type)
    if cls is None:
        raise JobDeserializationError(f"Unknown job type: {job_type!r}", payload)

    try:
        return cls.model_validate(document.get(DATA_KEY) or {})
    except ValidationError as e:
        raise JobDeserializationError(
            f"Payload data does not match {cls.__qualname__}: {e}", payload
        ) from e

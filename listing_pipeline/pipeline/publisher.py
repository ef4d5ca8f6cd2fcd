"""Marketplace publishing for the distribution step."""

from abc import ABC, abstractmethod

from pydantic import Field

from listing_pipeline.models.schemas import BaseModel, Platform


class PublishError(Exception):
    """Raised when a marketplace rejects or fails a publish call."""

    def __init__(self, message: str, platform: str, retryable: bool = True):
        super().__init__(message)
        self.platform = platform
        self.retryable = retryable


class PublishAck(BaseModel):
    platform: Platform
    response: str = Field(default="ok")
    url: str


class Publisher(ABC):
    """Publishes approved listing content to one marketplace at a time."""

    @abstractmethod
    async def publish(self, platform: Platform | str, product_id: str, content: dict) -> PublishAck:
        """
        Publish ``content`` for ``product_id``.

        Raises:
            PublishError: On failure.
        """


class SimulatedPublisher(Publisher):
    """Acknowledges every call with ``"ok"`` and a templated listing URL."""

    def __init__(self, url_template: str = "https://{platform}.example.com/products/{product_id}"):
        self.url_template = url_template
        self.published: list[tuple[str, str]] = []

    async def publish(self, platform: Platform | str, product_id: str, content: dict) -> PublishAck:
        platform_value = Platform(platform).value
        self.published.append((platform_value, product_id))
        return PublishAck(
            platform=platform_value,
            response="ok",
            url=self.url_template.format(platform=platform_value, product_id=product_id),
        )

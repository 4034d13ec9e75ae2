"""
Request and response models for the relay API.

``WebhookPayload`` mirrors the JSON body Alertmanager posts to webhook
receivers (version 4).
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alertrelay.alerts.schemas import Alert, parse_timestamp


class AlertPayload(BaseModel):
    """One alert inside an Alertmanager notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    fingerprint: str = Field(..., min_length=1)
    status: Literal["firing", "resolved"] = "firing"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: str | None = Field(default=None, alias="startsAt")
    ends_at: str | None = Field(default=None, alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")

    @field_validator("starts_at", "ends_at", mode="before")
    @classmethod
    def _check_timestamp(cls, value: Any) -> Any:
        parse_timestamp(value)
        return value

    def to_alert(self) -> Alert:
        """Convert to the domain model."""
        return Alert.from_dict(self.model_dump(by_alias=True))


class WebhookPayload(BaseModel):
    """Alertmanager webhook notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = "4"
    group_key: str = Field(default="", alias="groupKey")
    status: Literal["firing", "resolved"] = "firing"
    receiver: str = ""
    group_labels: dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: dict[str, str] = Field(
        default_factory=dict, alias="commonAnnotations",
    )
    external_url: str = Field(default="", alias="externalURL")
    alerts: list[AlertPayload] = Field(default_factory=list)


class Envelope(BaseModel):
    """Uniform response envelope."""

    status: Literal["success", "error"]
    message: str | None = None
    data: Any = None

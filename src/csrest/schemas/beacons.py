"""Beacon metadata schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class SleepDto(BaseModel):
    sleep: int = 0  # seconds
    jitter: int = Field(default=0, ge=0, le=99)  # percent


class BeaconDto(BaseModel):
    """A beacon as reported by GET /api/v1/beacons."""

    bid: str
    pbid: str | None = None
    computer: str = ""
    user: str = ""
    impersonated: str | None = None
    is_admin: bool = Field(default=False, alias="isAdmin")
    process: str = ""
    pid: int = 0
    host: str | None = None
    internal: str = ""
    external: str = ""
    os: str | None = None
    version: str | None = None
    build: int | None = None
    charset: str | None = None
    system_arch: str | None = Field(default=None, alias="systemArch")
    beacon_arch: str | None = Field(default=None, alias="beaconArch")
    session: str = ""
    listener: str = ""
    pivot_hint: str | None = Field(default=None, alias="pivotHint")
    port: int | None = None
    note: str | None = None
    color: str | None = None
    alive: bool = False
    link_state: str | None = Field(default=None, alias="linkState")
    last_checkin_time: datetime | None = Field(default=None, alias="lastCheckinTime")
    last_checkin_ms: int = Field(default=0, alias="lastCheckinMs")
    last_checkin_formatted: str = Field(default="", alias="lastCheckinFormatted")
    sleep: SleepDto = Field(default_factory=SleepDto)
    supports_sleep: bool = Field(default=False, alias="supportsSleep")

    model_config = {"populate_by_name": True}

"""
Shared data models for probe results and scan ranges.
Probe -> ProbeStatus -> ProbeOutcome; Sweep borrows a validated PortRange.
"""

from __future__ import annotations

import socket
from enum import Enum
from typing import Iterator

from pydantic import BaseModel, Field, field_validator, model_validator

MIN_PORT = 1
MAX_PORT = 65535


class ProbeOutcome(str, Enum):
    OPEN = "open"
    NOT_OPEN = "not_open"


class ProbeStatus(str, Enum):
    """Why a probe ended. Only OPEN counts as an open port."""

    OPEN = "open"
    REFUSED = "refused"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    INVALID_ADDRESS = "invalid_address"
    INVALID_PORT = "invalid_port"
    NO_RESOURCE = "no_resource"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def outcome(self) -> ProbeOutcome:
        return ProbeOutcome.OPEN if self is ProbeStatus.OPEN else ProbeOutcome.NOT_OPEN


class Target(BaseModel):
    address: str
    port: int = Field(ge=MIN_PORT, le=MAX_PORT)

    @field_validator("address")
    @classmethod
    def validate_ipv4_literal(cls, v: str) -> str:
        # literals only, never resolved
        try:
            socket.inet_pton(socket.AF_INET, v)
        except OSError as exc:
            raise ValueError(f"not an IPv4 address: {v!r}") from exc
        return v


class ProbeResult(BaseModel):
    port: int
    status: ProbeStatus
    elapsed_s: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.status.outcome is ProbeOutcome.OPEN


class PortRange(BaseModel):
    start: int = Field(ge=MIN_PORT, le=MAX_PORT)
    end: int = Field(ge=MIN_PORT, le=MAX_PORT)

    @model_validator(mode="after")
    def check_order(self) -> "PortRange":
        if self.start > self.end:
            raise ValueError(f"start port {self.start} is greater than end port {self.end}")
        return self

    def ports(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    @property
    def count(self) -> int:
        return self.end - self.start + 1

"""Types shared by every guest kind: power state, references, tags, DNS."""
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional


class PowerState(IntEnum):
    """Power state of a guest as reported by the status endpoint."""
    UNKNOWN = 0
    STOPPED = 1
    RUNNING = 2

    @classmethod
    def parse(cls, state: str) -> "PowerState":
        if state == "stopped":
            return cls.STOPPED
        if state == "running":
            return cls.RUNNING
        return cls.UNKNOWN

    @property
    def label(self) -> str:
        return {PowerState.STOPPED: "stopped", PowerState.RUNNING: "running"}.get(self, "")

    @staticmethod
    def combine(desired: Optional["PowerState"], current: "PowerState") -> "PowerState":
        """Resolve an optional target state against the current one."""
        if desired is not None:
            return desired
        return current


class TriBool(IntEnum):
    """Boolean with an explicit 'use the server default' value."""
    FALSE = -1
    NONE = 0
    TRUE = 1


@dataclass(frozen=True)
class GuestRef:
    """Address of a guest on the cluster."""
    node: str
    vmid: int
    pool: str = ""

    def __str__(self) -> str:
        return f"{self.node}/lxc/{self.vmid}"


@dataclass(frozen=True)
class Digest:
    """SHA-1 version token of a guest configuration.

    Rendered as 40 lowercase hex characters. Sent back on updates so the
    server can reject writes against a stale snapshot.
    """
    token: str

    def __str__(self) -> str:
        return self.token

    def __bool__(self) -> bool:
        return self.token != ""


@dataclass
class GuestDNS:
    """Resolver settings pushed into the guest."""
    nameservers: Optional[List[str]] = None  # empty list removes the setting
    search_domain: Optional[str] = None  # "" removes the setting


GUEST_ID_MINIMUM = 100
GUEST_ID_MAXIMUM = 999999999
GUEST_NAME_MAX_LENGTH = 128
POOL_NAME_MAX_LENGTH = 1024
TAG_MAX_LENGTH = 124


def tags_to_api(tags: List[str]) -> str:
    return ";".join(tags)


def tags_from_api(raw: str) -> List[str]:
    # the API sometimes answers " " for a guest without tags
    return [tag.strip() for tag in raw.strip().split(";") if tag.strip()]


def nameservers_to_api(nameservers: List[str]) -> str:
    return " ".join(nameservers)

"""Abstract remote guest API consumed by the reconciler."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pvelxc.models.guest import GuestRef, PowerState


class GuestApi(ABC):
    """Blocking calls against one cluster.

    Task-backed endpoints (move, resize, power actions, create) return
    only after the task finished. Failures raise RemoteApiError.
    """

    @abstractmethod
    def read_config(self, ref: GuestRef) -> Dict[str, Any]:
        """Raw configuration including pending values."""

    @abstractmethod
    def read_status(self, ref: GuestRef) -> PowerState:
        pass

    @abstractmethod
    def read_pending(self, ref: GuestRef) -> List[Dict[str, Any]]:
        """Entries of the pending endpoint, one per configuration key."""

    @abstractmethod
    def read_pool(self, ref: GuestRef) -> Optional[str]:
        """Pool the guest belongs to, None when it is in no pool."""

    @abstractmethod
    def update_config(self, ref: GuestRef, params: Dict[str, Any], digest: Optional[str] = None):
        pass

    @abstractmethod
    def move_mount(self, ref: GuestRef, volume: str, storage: str, delete_original: bool = True) -> str:
        pass

    @abstractmethod
    def resize_mount(self, ref: GuestRef, volume: str, size: str) -> str:
        pass

    @abstractmethod
    def shutdown(self, ref: GuestRef, force: bool = False) -> str:
        pass

    @abstractmethod
    def start(self, ref: GuestRef) -> str:
        pass

    @abstractmethod
    def reboot(self, ref: GuestRef) -> str:
        pass

    @abstractmethod
    def next_id(self) -> int:
        pass

    @abstractmethod
    def create_guest(self, node: str, params: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    def add_to_pool(self, pool: str, vmid: int, allow_move: bool = False):
        pass

    @abstractmethod
    def remove_from_pool(self, pool: str, vmid: int):
        pass

    def has_pending_changes(self, ref: GuestRef) -> bool:
        """True when a value only becomes active after the next restart."""
        return pending_entries_have_changes(self.read_pending(ref))


def pending_entries_have_changes(entries: List[Dict[str, Any]]) -> bool:
    for entry in entries:
        if "pending" in entry or "delete" in entry:
            return True
    return False

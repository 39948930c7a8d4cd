"""Desired-state files."""
from pvelxc.config.loader import GuestFileLoader, load_guest_file
from pvelxc.config.schema import GuestFile, LxcConfigModel

__all__ = ['GuestFile', 'GuestFileLoader', 'LxcConfigModel', 'load_guest_file']

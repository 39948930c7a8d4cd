"""Remote guest API: abstract interface, HTTP and in-memory implementations."""
from .api import GuestApi, pending_entries_have_changes
from .decoder import decode_config
from .http import ProxmoxHttpApi, build_api
from .mock import MockGuestApi

__all__ = [
    'GuestApi',
    'MockGuestApi',
    'ProxmoxHttpApi',
    'build_api',
    'decode_config',
    'pending_entries_have_changes',
]

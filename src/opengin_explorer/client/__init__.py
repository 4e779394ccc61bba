"""OpenGIN data-access client and the pure transforms applied to its payloads."""

from .api_client_core import OpenGINClient, log_event
from .category_tree import CategoryRow, flatten_tree, iter_tree, walk
from .metadata_merge import decode_metadata, validate_and_merge
from .relation_helper import flatten
from .wire_value import Decoded, Fallback, WireHeaderMode, decode, decode_wire_value

__all__ = [
    "OpenGINClient",
    "log_event",
    "CategoryRow",
    "flatten_tree",
    "iter_tree",
    "walk",
    "decode_metadata",
    "validate_and_merge",
    "flatten",
    "Decoded",
    "Fallback",
    "WireHeaderMode",
    "decode",
    "decode_wire_value",
]

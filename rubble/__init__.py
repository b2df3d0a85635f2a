"""Bluetooth Low Energy advertising, link-layer and L2CAP packet handling."""

__version__ = "0.1.0"

__all__ = [
    "errors",
    "channel_map",
    "ad_structure",
    "adv_header",
    "advertising",
    "l2cap",
]
from __future__ import annotations

from typing import Tuple
import ipaddress


def address_to_int(address: str) -> int:
    """Dotted-quad IPv4 string -> unsigned 32-bit integer."""
    octets = (address or "").strip().split(".")
    if len(octets) != 4:
        raise ValueError(f"Invalid IPv4 address: {address!r}")
    value = 0
    for octet in octets:
        if not (octet.isascii() and octet.isdigit()):
            raise ValueError(f"Invalid IPv4 address: {address!r}")
        n = int(octet)
        if n > 255:
            raise ValueError(f"Invalid IPv4 address: {address!r}")
        value = (value << 8) | n
    return value


def int_to_address(value: int) -> str:
    return str(ipaddress.IPv4Address(value & 0xFFFFFFFF))


def prefix_to_mask(prefix_length: int) -> int:
    if prefix_length < 0 or prefix_length > 32:
        raise ValueError(f"Invalid prefix length: {prefix_length}")
    if prefix_length == 0:
        return 0
    return (0xFFFFFFFF << (32 - prefix_length)) & 0xFFFFFFFF


def split_cidr(cidr: str) -> Tuple[str, int]:
    """Return (network, prefix_length); the /N part is required."""
    network, sep, prefix_s = (cidr or "").strip().partition("/")
    if not sep or not (prefix_s.isascii() and prefix_s.isdigit()):
        raise ValueError(f"Invalid CIDR (expected address/prefix): {cidr!r}")
    return network, int(prefix_s)


def cidr_prefix_length(cidr: str) -> int:
    return split_cidr(cidr)[1]


def address_in_network(address: str, cidr: str) -> bool:
    network, prefix = split_cidr(cidr)
    mask = prefix_to_mask(prefix)
    return (address_to_int(address) & mask) == (address_to_int(network) & mask)


def is_ipv4_address(text: str) -> bool:
    try:
        address_to_int(text)
    except ValueError:
        return False
    return True


def validate_cidr(cidr: str) -> str:
    """Raise ValueError unless `cidr` parses; returns it stripped."""
    network, prefix = split_cidr(cidr)
    address_to_int(network)
    prefix_to_mask(prefix)
    return (cidr or "").strip()


__all__ = [
    "address_to_int",
    "int_to_address",
    "prefix_to_mask",
    "split_cidr",
    "cidr_prefix_length",
    "address_in_network",
    "is_ipv4_address",
    "validate_cidr",
]

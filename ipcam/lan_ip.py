import logging
import socket

import psutil

UNKNOWN_ADDRESS = "unknown"
PREFERRED_INTERFACES = ('en0', 'en1', 'eth0', 'wlan0')


def _is_usable(address):
    return bool(address) and not address.startswith('127.')


def _interface_address(preferred):
    addresses = psutil.net_if_addrs()
    for iface in preferred:
        for snic in addresses.get(iface, []):
            if snic.family == socket.AF_INET and _is_usable(snic.address):
                return snic.address
    return None


def _probe_address():
    # connect() on a UDP socket sends nothing; it only picks a route
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("8.8.8.8", 80))
            candidate = probe.getsockname()[0]
    except OSError as e:
        logging.debug(f"LAN address probe failed: {e}")
        return None
    return candidate if _is_usable(candidate) else None


def get_lan_ip(preferred=PREFERRED_INTERFACES):
    """Best guess at the address other machines on the LAN can reach us on"""
    return _interface_address(preferred) or _probe_address() or UNKNOWN_ADDRESS

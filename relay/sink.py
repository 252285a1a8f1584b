import ipaddress
import logging
import socket

from relay.errors import ConnectFailure, ResolveFailure

CONNECT_TIMEOUT = 10.0

SOCKET_TYPES = {
    "tcp": socket.SOCK_STREAM,
    "udp": socket.SOCK_DGRAM,
}


def resolve(address):
    """Return a literal address unchanged, otherwise the first DNS answer."""
    try:
        return str(ipaddress.ip_address(address))
    except ValueError:
        pass

    try:
        answers = socket.getaddrinfo(address, None, proto=socket.IPPROTO_TCP)
    except (OSError, UnicodeError) as e:
        raise ResolveFailure(f"Couldn't resolve {address}: {e}") from e
    if not answers:
        raise ResolveFailure(f"Couldn't resolve {address}: no addresses returned")

    resolved = answers[0][4][0]
    logging.debug(f"Resolved {address} to {resolved}")
    return resolved


def connect(address, port, transport, timeout=CONNECT_TIMEOUT):
    if transport not in SOCKET_TYPES:
        raise ValueError(f"Unknown carbon protocol {transport!r}")

    ip = resolve(address)
    family = socket.AF_INET6 if ipaddress.ip_address(ip).version == 6 else socket.AF_INET

    sock = socket.socket(family, SOCKET_TYPES[transport])
    try:
        sock.settimeout(timeout)
        sock.connect((ip, port))
    except OSError as e:
        sock.close()
        raise ConnectFailure(f"Can't connect to carbon at: {ip}:{port}/{transport}: {e}") from e
    return sock

import logging
import socket
import time

from relay.errors import ConnectFailure, ReadFailure

CONNECT_TIMEOUT = 10.0
RECV_SIZE = 65536


def fetch(address, port, connect_timeout=CONNECT_TIMEOUT, read_timeout=None):
    """Read one gmond XML dump; the peer closing the stream ends the message.

    ``read_timeout`` bounds the whole read phase, not each recv call.
    """
    target = f"{address}:{port}"
    start = time.monotonic()

    try:
        conn = socket.create_connection((address, port), timeout=connect_timeout)
    except (OSError, UnicodeError) as e:
        raise ConnectFailure(f"Couldn't reach gmond at address {target}: {e}") from e

    with conn:
        deadline = None if read_timeout is None else time.monotonic() + read_timeout
        chunks = []
        try:
            while True:
                if deadline is None:
                    conn.settimeout(None)
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise ReadFailure(f"Reading gmond data from {target} took longer than {read_timeout}s")
                    conn.settimeout(remaining)
                chunk = conn.recv(RECV_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
        except socket.timeout as e:
            raise ReadFailure(f"Reading gmond data from {target} took longer than {read_timeout}s") from e
        except OSError as e:
            raise ReadFailure(f"Couldn't read gmond data from {target}: {e}") from e

    data = b"".join(chunks)
    logging.info(f"Got ganglia data ({len(data)} bytes) in {time.monotonic() - start:.3f}s")
    return data

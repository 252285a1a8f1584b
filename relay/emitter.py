import logging

from relay.models import EmitResult, Snapshot


def normalize_name(name):
    # lossy: "a b" and "a_b" end up on the same path
    return name.replace(" ", "_")


def effective_prefix(prefix, cluster_name, cluster_as_prefix):
    if cluster_as_prefix:
        return f"{cluster_name}."
    return prefix


def format_line(prefix, host, metric):
    return f"{prefix}{host.name}.{normalize_name(metric.name)}.sum {metric.value} {host.reported}\n"


def emit(snapshot: Snapshot, conn, prefix="", cluster_as_prefix=False):
    """Write one carbon plaintext line per metric, then close ``conn``.

    Delivery is best effort: a failed write is counted and skipped, nothing is
    retried or buffered for the next cycle.
    """
    result = EmitResult()
    try:
        for cluster in snapshot.clusters:
            cluster_prefix = effective_prefix(prefix, cluster.name, cluster_as_prefix)
            sent = 0
            for host in cluster.hosts:
                for metric in host.metrics:
                    line = format_line(cluster_prefix, host, metric)
                    result.attempted += 1
                    try:
                        conn.sendall(line.encode("utf-8"))
                        sent += 1
                    except OSError as e:
                        result.failed += 1
                        logging.debug(f"Dropped metric line {line.rstrip()!r}: {e}")
            logging.info(f"Sent {sent} metrics for cluster {cluster.name}")
    finally:
        conn.close()

    if result.failed:
        logging.warning(f"{result.failed} of {result.attempted} metric writes failed")
    return result

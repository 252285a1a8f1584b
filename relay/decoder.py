import codecs
import re
from xml.etree.ElementTree import ParseError

from defusedxml import DefusedXmlException
from defusedxml import ElementTree

from relay.errors import DecodeFailure
from relay.models import Cluster, Host, Metric, Snapshot

ROOT_TAG = "GANGLIA_XML"

# gmond declares ISO-8859-1; anything else besides the UTF-8 default is refused
SUPPORTED_ENCODINGS = ("utf-8", "iso-8859-1")

_XML_DECLARATION = re.compile(rb"""^\s*<\?xml[^>]*?\sencoding\s*=\s*["']([^"']*)["']""")


def declared_encoding(data):
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    match = _XML_DECLARATION.match(data)
    if match is None:
        return None
    return match.group(1).decode("ascii", errors="replace")


def _reported(value, host_name):
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise DecodeFailure(f"Host {host_name!r} has a non-integer REPORTED value {value!r}") from e


def decode(data: bytes) -> Snapshot:
    """Turn a raw gmond dump into a Snapshot.

    Raises DecodeFailure for an empty payload, malformed XML, a root element
    other than GANGLIA_XML, a bad REPORTED attribute or an unsupported
    declared encoding.
    """
    if not data or not data.strip():
        raise DecodeFailure("Empty gmond payload")

    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        raise DecodeFailure("Unsupported charset UTF-16")

    encoding = declared_encoding(data)
    if encoding is not None and encoding.lower() not in SUPPORTED_ENCODINGS:
        raise DecodeFailure(f"Unsupported charset {encoding}")

    try:
        root = ElementTree.fromstring(data)
    except (ParseError, DefusedXmlException) as e:
        raise DecodeFailure(f"Couldn't unmarshal gmond XML: {e}") from e

    if root.tag != ROOT_TAG:
        raise DecodeFailure(f"Unexpected root element {root.tag!r}, expected {ROOT_TAG}")

    clusters = []
    for cluster_el in root.iterfind("CLUSTER"):
        hosts = []
        for host_el in cluster_el.iterfind("HOST"):
            host_name = host_el.get("NAME", "")
            metrics = [
                Metric(name=metric_el.get("NAME", ""), value=metric_el.get("VAL", ""))
                for metric_el in host_el.iterfind("METRIC")
            ]
            hosts.append(
                Host(
                    name=host_name,
                    reported=_reported(host_el.get("REPORTED"), host_name),
                    metrics=metrics,
                )
            )
        clusters.append(Cluster(name=cluster_el.get("NAME", ""), hosts=hosts))

    return Snapshot(clusters=clusters)

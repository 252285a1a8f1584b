import logging
import os
import re
from typing import Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from relay.errors import ConfigError

DEFAULT_SLEEP_TIME = 0
DEFAULT_READ_TIMEOUT = 30.0

HELP_TEXT = """\
{prog} looks for the following environment variables:
RELAY_GMOND_ADDRESS [mandatory]: address gmond listens on. Example: 127.0.0.1
RELAY_GMOND_PORT [mandatory]: port gmond listens on. Example: 8649
RELAY_CARBON_ADDRESS [mandatory]: address to send metrics to. Example: carbon01
RELAY_CARBON_PORT [mandatory]: port to send metrics to. Example: 2003
RELAY_CARBON_PROTOCOL [mandatory]: tcp or udp. Example: udp
RELAY_GRAPHITE_PREFIX: prefix for metric paths. Example: zone.mgmt.
RELAY_CLUSTER_AS_A_PREFIX: use the Ganglia cluster name as the metric prefix
RELAY_SLEEP_TIME: seconds to sleep between gmond polls (default 0)
RELAY_GMOND_READ_TIMEOUT: seconds allowed for reading one gmond snapshot (default 30)
RELAY_BACKOFF_ON_ALL_ERRORS: also back off after decode and carbon failures
RELAY_LOG_FILE: log file location. Example: /var/log/gmond-relay.log
"""

MANDATORY = (
    "RELAY_GMOND_ADDRESS",
    "RELAY_GMOND_PORT",
    "RELAY_CARBON_ADDRESS",
    "RELAY_CARBON_PORT",
    "RELAY_CARBON_PROTOCOL",
)

_NON_NEGATIVE_INT = re.compile(r"^[0-9]+$")


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    gmond_address: str = Field(..., min_length=1)
    gmond_port: int = Field(..., ge=1, le=65535)
    carbon_address: str = Field(..., min_length=1)
    carbon_port: int = Field(..., ge=1, le=65535)
    carbon_protocol: Literal["tcp", "udp"]
    graphite_prefix: str = ""
    cluster_as_prefix: bool = False
    sleep_time: int = Field(DEFAULT_SLEEP_TIME, ge=0)
    read_timeout: float | None = Field(DEFAULT_READ_TIMEOUT, gt=0)
    backoff_on_all_errors: bool = False
    log_file: str | None = None


def parse_sleep_time(raw: str | None) -> int:
    if not raw:
        return DEFAULT_SLEEP_TIME
    if not _NON_NEGATIVE_INT.match(raw):
        logging.warning(f"Can't convert sleep time {raw!r} to int. Using default sleep time")
        return DEFAULT_SLEEP_TIME
    return int(raw)


def parse_read_timeout(raw: str | None) -> float:
    if not raw:
        return DEFAULT_READ_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if value <= 0:
        logging.warning(f"Invalid read timeout {raw!r}. Using default of {DEFAULT_READ_TIMEOUT}s")
        return DEFAULT_READ_TIMEOUT
    return value


def load_config(environ: Mapping[str, str] | None = None) -> RelayConfig:
    env = os.environ if environ is None else environ

    missing = [name for name in MANDATORY if not env.get(name)]
    if missing:
        raise ConfigError(f"Please specify {', '.join(missing)}")

    try:
        return RelayConfig(
            gmond_address=env["RELAY_GMOND_ADDRESS"],
            gmond_port=env["RELAY_GMOND_PORT"],
            carbon_address=env["RELAY_CARBON_ADDRESS"],
            carbon_port=env["RELAY_CARBON_PORT"],
            carbon_protocol=env["RELAY_CARBON_PROTOCOL"].lower(),
            graphite_prefix=env.get("RELAY_GRAPHITE_PREFIX", ""),
            cluster_as_prefix=bool(env.get("RELAY_CLUSTER_AS_A_PREFIX")),
            sleep_time=parse_sleep_time(env.get("RELAY_SLEEP_TIME")),
            read_timeout=parse_read_timeout(env.get("RELAY_GMOND_READ_TIMEOUT")),
            backoff_on_all_errors=bool(env.get("RELAY_BACKOFF_ON_ALL_ERRORS")),
            log_file=env.get("RELAY_LOG_FILE") or None,
        )
    except ValidationError as e:
        raise ConfigError(str(e)) from e

import enum
import logging
import sys
import time

from relay.config import HELP_TEXT, RelayConfig, load_config
from relay.decoder import decode
from relay.emitter import emit
from relay.errors import ConfigError, ConnectFailure, DecodeFailure, ReadFailure, ResolveFailure
from relay.fetcher import fetch
from relay.sink import connect

# ================= BACKOFF =================
ERR_INIT_SLEEP_TIME = 2
ERR_MAX_SLEEP_TIME = 32
ERR_SLEEP_TIME_MX = 2


class ErrorBackoff:
    """Sleep schedule for consecutive failures: 2, 4, 8, 16, 32, 2, ...

    Once doubling passes ``maximum`` the delay starts over from ``initial``.
    """

    def __init__(self, initial=ERR_INIT_SLEEP_TIME, multiplier=ERR_SLEEP_TIME_MX, maximum=ERR_MAX_SLEEP_TIME):
        self.initial = initial
        self.multiplier = multiplier
        self.maximum = maximum
        self.current = initial

    def next_delay(self) -> int:
        delay = self.current
        self.current *= self.multiplier
        if self.current > self.maximum:
            self.current = self.initial
        return delay

    def reset(self):
        self.current = self.initial


class CycleOutcome(enum.Enum):
    OK = "ok"
    FETCH_FAILED = "fetch_failed"
    DECODE_FAILED = "decode_failed"
    SINK_FAILED = "sink_failed"


# ================= LOOP =================
def _error_sleep(backoff, sleep):
    delay = backoff.next_delay()
    logging.info(f"Sleeping {delay} seconds!")
    sleep(delay)


def run_cycle(config: RelayConfig, backoff: ErrorBackoff, sleep=time.sleep) -> CycleOutcome:
    try:
        gmond_xml = fetch(config.gmond_address, config.gmond_port, read_timeout=config.read_timeout)
    except (ConnectFailure, ReadFailure) as e:
        logging.error(f"Something bad happened when talking to gmond: {e}")
        _error_sleep(backoff, sleep)
        return CycleOutcome.FETCH_FAILED

    if not config.backoff_on_all_errors:
        backoff.reset()

    logging.info("Start ganglia data processing...")
    try:
        snapshot = decode(gmond_xml)
    except DecodeFailure as e:
        logging.error(f"Couldn't decode gmond data: {e}")
        if config.backoff_on_all_errors:
            _error_sleep(backoff, sleep)
        return CycleOutcome.DECODE_FAILED
    logging.info("Ganglia data processing has finished!")

    try:
        carbon_conn = connect(config.carbon_address, config.carbon_port, config.carbon_protocol)
    except (ResolveFailure, ConnectFailure) as e:
        logging.error(f"Couldn't open carbon connection: {e}")
        if config.backoff_on_all_errors:
            _error_sleep(backoff, sleep)
        return CycleOutcome.SINK_FAILED

    result = emit(snapshot, carbon_conn, prefix=config.graphite_prefix, cluster_as_prefix=config.cluster_as_prefix)
    logging.info(f"Cycle finished: {result.attempted} metric writes attempted, {result.failed} failed")

    backoff.reset()
    if config.sleep_time:
        sleep(config.sleep_time)
    return CycleOutcome.OK


def run(config: RelayConfig, sleep=time.sleep, max_cycles=None):
    logging.info(
        f"Relaying gmond {config.gmond_address}:{config.gmond_port} to carbon "
        f"{config.carbon_address}:{config.carbon_port}/{config.carbon_protocol}, interval={config.sleep_time}s"
    )
    backoff = ErrorBackoff()
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        run_cycle(config, backoff, sleep=sleep)
        cycles += 1


# ================= ENTRYPOINT =================
def setup_logging(log_file):
    fmt = "%(asctime)s - %(levelname)s - %(message)s"
    if log_file:
        logging.basicConfig(level=logging.INFO, format=fmt, filename=log_file, filemode="a")
    else:
        logging.basicConfig(level=logging.INFO, format=fmt, stream=sys.stdout)


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    prog = "gmond-relay"

    if args:
        if args[0] == "help":
            sys.stdout.write(HELP_TEXT.format(prog=prog))
        else:
            print(f"Use '{prog} help' for help", file=sys.stderr)
        return 0

    try:
        config = load_config()
    except ConfigError as e:
        print(e, file=sys.stderr)
        print(f"Please use '{prog} help' to get help", file=sys.stderr)
        return 1

    try:
        setup_logging(config.log_file)
    except OSError as e:
        print(f"Couldn't open {config.log_file}: {e}", file=sys.stderr)
        return 1

    run(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())

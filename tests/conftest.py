import pytest

from relay.models import Cluster, Host, Metric, Snapshot


class FakeConnection:
    def __init__(self, fail_on=()):
        self.lines = []
        self.closed = False
        self.fail_on = set(fail_on)
        self.calls = 0

    def sendall(self, data: bytes):
        self.calls += 1
        if self.calls in self.fail_on:
            raise BrokenPipeError("peer went away")
        self.lines.append(data.decode("utf-8"))

    def close(self):
        self.closed = True


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def snapshot():
    return Snapshot(
        clusters=[
            Cluster(
                name="A",
                hosts=[
                    Host(
                        name="web1",
                        reported=1700000000,
                        metrics=[Metric(name="load_one", value="0.5"), Metric(name="cpu idle", value="97.1")],
                    ),
                    Host(name="web2", reported=1700000005, metrics=[Metric(name="load_one", value="1.25")]),
                ],
            ),
            Cluster(
                name="B",
                hosts=[Host(name="db1", reported=1700000010, metrics=[Metric(name="mem_free", value="2048")])],
            ),
        ]
    )

from pydantic import BaseModel, ConfigDict
from typing import Tuple


class Metric(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class Host(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    reported: int
    metrics: Tuple[Metric, ...] = ()


class Cluster(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    hosts: Tuple[Host, ...] = ()


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    clusters: Tuple[Cluster, ...] = ()


class EmitResult(BaseModel):
    attempted: int = 0
    failed: int = 0

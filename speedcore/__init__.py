"""Speed check core -- probing, fallback estimation, aggregation and rating."""

from .cancel import CancelToken
from .collector import SampleCollector
from .errors import (
    DecodeFailure,
    MeasurementCancelled,
    NetworkFailure,
    PersistenceFailure,
    SpeedcheckError,
)
from .fallback import FallbackEstimator
from .history import (
    JsonFileStorage,
    MemoryStorage,
    ResultStore,
    decode_share_link,
    decode_share_token,
    encode_share_token,
    share_link,
)
from .models import MeasurementResult, Rating, SampleKind, SpeedSample
from .orchestrator import Phase, ProgressEvent, State, TestOrchestrator
from .rating import Metric, classify, connection_type, rate_result, rating_label
from .stats import (
    aggregate_ping,
    build_result,
    calculate_jitter,
    filter_plausible,
    format_latency,
    format_speed,
)

__all__ = [
    "CancelToken",
    "DecodeFailure",
    "FallbackEstimator",
    "JsonFileStorage",
    "MeasurementCancelled",
    "MeasurementResult",
    "MemoryStorage",
    "Metric",
    "NetworkFailure",
    "PersistenceFailure",
    "Phase",
    "ProgressEvent",
    "Rating",
    "ResultStore",
    "SampleCollector",
    "SampleKind",
    "SpeedSample",
    "SpeedcheckError",
    "State",
    "TestOrchestrator",
    "aggregate_ping",
    "build_result",
    "calculate_jitter",
    "classify",
    "connection_type",
    "decode_share_link",
    "decode_share_token",
    "encode_share_token",
    "filter_plausible",
    "format_latency",
    "format_speed",
    "rate_result",
    "rating_label",
    "share_link",
]

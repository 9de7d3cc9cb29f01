"""Schema migration for the persisted agent state.

Each step upgrades a raw record by exactly one version. A step copies every existing key,
adds the keys introduced by its version with safe defaults (``setdefault``, so nothing
already present is overwritten), and bumps ``schemaVersion``. Keys a step does not know
about are carried through untouched.

Version history:

* v0: records written before the breaker and receipt fields existed.
* v1: trade counters, the X API breaker pair, receipt idempotency fingerprint.
* v2: activity watcher cursors and the last receipt post day.
* v3: content planner counters and the fingerprint memory.
* v4: per-channel circuit breaker maps, seeded from the v1/v2 per-service fields.
* v5: recently posted texts for the similarity guard.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from typing import Any

from basedintern.domain.state import CURRENT_SCHEMA_VERSION
from basedintern.errors import CorruptStateError

RawRecord = dict[str, Any]

_VERSION_KEY = "schemaVersion"


def _v0_to_v1(record: RawRecord) -> RawRecord:
    out = dict(record)
    out.setdefault("xApiFailureCount", 0)
    out.setdefault("xApiCircuitBreakerDisabledUntilMs", None)
    out.setdefault("lastPostedReceiptFingerprint", None)
    out[_VERSION_KEY] = 1
    return out


def _v1_to_v2(record: RawRecord) -> RawRecord:
    out = dict(record)
    out.setdefault("lastSeenNonce", None)
    out.setdefault("lastSeenEthWei", None)
    out.setdefault("lastSeenTokenRaw", None)
    out.setdefault("lastSeenBlockNumber", None)
    out.setdefault("lastPostDayUtc", None)
    out[_VERSION_KEY] = 2
    return out


def _v2_to_v3(record: RawRecord) -> RawRecord:
    out = dict(record)
    out.setdefault("contentDayKey", None)
    out.setdefault("contentDailyCount", 0)
    out.setdefault("contentLastPostAtMs", None)
    out.setdefault("seenFingerprints", [])
    out.setdefault("lastPostedFingerprint", None)
    out[_VERSION_KEY] = 3
    return out


# Per-service breaker fields written before the breaker became per-channel.
_LEGACY_BREAKER_FIELDS = {
    "x_api": ("xApiFailureCount", "xApiCircuitBreakerDisabledUntilMs"),
    "moltbook": ("moltbookFailureCount", "moltbookCircuitBreakerDisabledUntilMs"),
}


def _v3_to_v4(record: RawRecord) -> RawRecord:
    out = dict(record)
    failures: dict[str, int] = {}
    disabled_until: dict[str, int | None] = {}
    for channel, (count_key, until_key) in _LEGACY_BREAKER_FIELDS.items():
        count = record.get(count_key)
        if isinstance(count, int) and count > 0:
            failures[channel] = count
        until = record.get(until_key)
        if isinstance(until, int):
            disabled_until[channel] = until
    out.setdefault("perChannelFailureCount", failures)
    out.setdefault("perChannelDisabledUntilMs", disabled_until)
    out[_VERSION_KEY] = 4
    return out


def _v4_to_v5(record: RawRecord) -> RawRecord:
    out = dict(record)
    out.setdefault("recentPostTexts", [])
    out[_VERSION_KEY] = 5
    return out


MIGRATIONS: dict[int, Callable[[RawRecord], RawRecord]] = {
    0: _v0_to_v1,
    1: _v1_to_v2,
    2: _v2_to_v3,
    3: _v3_to_v4,
    4: _v4_to_v5,
}


def schema_version_of(raw: Mapping[str, Any]) -> int:
    version = raw.get(_VERSION_KEY)
    if version is None:
        raise CorruptStateError("state record has no schemaVersion")
    if isinstance(version, bool) or not isinstance(version, int):
        raise CorruptStateError(f"state schemaVersion must be an integer, got {version!r}")
    if version < 0:
        raise CorruptStateError(f"state schemaVersion must not be negative, got {version}")
    if version > CURRENT_SCHEMA_VERSION:
        raise CorruptStateError(
            f"state schemaVersion {version} is newer than supported {CURRENT_SCHEMA_VERSION}; "
            "downgrades are not supported"
        )
    return version


def migrate(raw: Mapping[str, Any]) -> RawRecord:
    """Upgrade ``raw`` to ``CURRENT_SCHEMA_VERSION``.

    The input is never modified. A record already at the current version comes back as a
    deep copy equal to the input.
    """
    if not isinstance(raw, Mapping):
        raise CorruptStateError(f"state record must be a JSON object, got {type(raw).__name__}")
    version = schema_version_of(raw)
    record: RawRecord = copy.deepcopy(dict(raw))
    while version < CURRENT_SCHEMA_VERSION:
        step = MIGRATIONS[version]
        record = step(record)
        version = record[_VERSION_KEY]
    return record

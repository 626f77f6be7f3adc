from __future__ import annotations

from prometheus_client import Counter

from emlconv.models.enums import Bucket
from emlconv.services.mime.walker import Classification

_PARTS_CLASSIFIED_TOTAL = Counter(
    "emlconv_parts_classified_total",
    "MIME leaf parts classified, by bucket.",
    labelnames=("bucket",),
)
_PART_DIAGNOSTICS_TOTAL = Counter(
    "emlconv_part_diagnostics_total",
    "Problems recovered from while classifying MIME parts.",
    labelnames=("kind",),
)


def observe_classification(classification: Classification) -> None:
    counts = {
        Bucket.body: len(classification.body_candidates),
        Bucket.inline_media: len(classification.inline_media),
        Bucket.attachment: len(classification.attachments),
    }
    for bucket, count in counts.items():
        if count:
            _PARTS_CLASSIFIED_TOTAL.labels(bucket=bucket.value).inc(count)
    for diagnostic in classification.diagnostics:
        _PART_DIAGNOSTICS_TOTAL.labels(kind=diagnostic.kind.value).inc()

"""
Metrics Collection with Prometheus.

Counts token lifecycle operations and audit sink failures.
"""

from prometheus_client import CollectorRegistry, Counter


class TokenMetrics:
    """
    Centralized metrics for the token lifecycle engine.

    Covers:
    - Issuance (per token type)
    - Revocation and rotation (per mode)
    - Derivation (successes and rejections by error)
    - Lookups (found / not found)
    - Audit sink failures (per event)
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize all Prometheus metrics."""
        kwargs = {"registry": registry} if registry is not None else {}

        self.tokens_issued_total = Counter(
            "bearer_tokens_issued_total",
            "Total tokens issued",
            ["token_type"],
            **kwargs,
        )

        self.tokens_revoked_total = Counter(
            "bearer_tokens_revoked_total",
            "Total tokens revoked",
            ["mode"],
            **kwargs,
        )

        self.tokens_rotated_total = Counter(
            "bearer_tokens_rotated_total",
            "Total token rotations",
            ["mode"],
            **kwargs,
        )

        self.tokens_derived_total = Counter(
            "bearer_tokens_derived_total",
            "Total derived tokens created",
            **kwargs,
        )

        self.derivations_rejected_total = Counter(
            "bearer_derivations_rejected_total",
            "Derivation requests rejected by validation",
            ["error_type"],
            **kwargs,
        )

        self.token_lookups_total = Counter(
            "bearer_token_lookups_total",
            "Presented-credential lookups",
            ["result"],
            **kwargs,
        )

        self.audit_failures_total = Counter(
            "bearer_audit_failures_total",
            "Audit log writes that failed and were discarded",
            ["event"],
            **kwargs,
        )

    def record_issued(self, token_type: str) -> None:
        self.tokens_issued_total.labels(token_type=token_type).inc()

    def record_revoked(self, mode: str, count: int) -> None:
        if count > 0:
            self.tokens_revoked_total.labels(mode=mode).inc(count)

    def record_rotated(self, mode: str) -> None:
        self.tokens_rotated_total.labels(mode=mode).inc()

    def record_derived(self) -> None:
        self.tokens_derived_total.inc()

    def record_derivation_rejected(self, error_type: str) -> None:
        self.derivations_rejected_total.labels(error_type=error_type).inc()

    def record_lookup(self, found: bool) -> None:
        self.token_lookups_total.labels(result="found" if found else "not_found").inc()

    def record_audit_failure(self, event: str) -> None:
        self.audit_failures_total.labels(event=event).inc()


# Process-wide metrics (Prometheus collectors are registered once per process)
metrics = TokenMetrics()

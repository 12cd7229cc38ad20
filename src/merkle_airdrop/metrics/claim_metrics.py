"""
Merkle Airdrop Claim Service - Claim Metrics

Prometheus metrics for the claim registry and distribution tooling.

Metrics Categories:
- Claims and claimed amounts
- Proof verifications
- Administrative operations (root rotation, custody withdrawal)
- Merkle tree building
"""

from prometheus_client import Counter, Gauge, Histogram, Info

import structlog

logger = structlog.get_logger(__name__)


class ClaimMetrics:
    """
    Centralized metrics for the claim service.

    Provides visibility into:
    - Claim success and rejection reasons
    - Value flowing out of custody
    - Root rotations and withdrawals
    - Tree build cost
    """

    def __init__(self) -> None:
        """Initialize all claim metrics."""
        self._init_claim_metrics()
        self._init_admin_metrics()
        self._init_merkle_metrics()
        self._init_info_metrics()

    def _init_claim_metrics(self) -> None:
        """Initialize claim metrics."""
        self.claims_total = Counter(
            "airdrop_claims_total",
            "Claim attempts by result",
            ["result"],
        )

        self.claimed_amount = Counter(
            "airdrop_claimed_amount_total",
            "Total amount paid out through claims",
        )

        self.custody_balance = Gauge(
            "airdrop_custody_balance",
            "Custody balance after the last registry operation",
        )

    def _init_admin_metrics(self) -> None:
        """Initialize root rotation and withdrawal metrics."""
        self.root_updates = Counter(
            "airdrop_root_updates_total",
            "Root rotation attempts by result",
            ["result"],
        )

        self.withdrawals = Counter(
            "airdrop_withdrawals_total",
            "Custody withdrawal attempts by result",
            ["result"],
        )

        self.withdrawn_amount = Counter(
            "airdrop_withdrawn_amount_total",
            "Total amount withdrawn from custody by the owner",
        )

    def _init_merkle_metrics(self) -> None:
        """Initialize Merkle tree metrics."""
        self.merkle_build_duration = Histogram(
            "airdrop_merkle_build_duration_seconds",
            "Merkle tree build time",
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
        )

        self.merkle_tree_size = Histogram(
            "airdrop_merkle_tree_size",
            "Number of entitlements in built trees",
            buckets=[10, 100, 1000, 10000, 100000, 1000000],
        )

        self.merkle_verifications = Counter(
            "airdrop_merkle_verifications_total",
            "Merkle proof verifications",
            ["result"],
        )

    def _init_info_metrics(self) -> None:
        """Initialize info metrics."""
        self.service_info = Info(
            "airdrop_service",
            "Claim service information",
        )

    # Convenience methods

    def record_claim(self, amount: int) -> None:
        """Record a successful claim."""
        self.claims_total.labels(result="claimed").inc()
        self.claimed_amount.inc(amount)

    def record_claim_rejected(self, reason: str) -> None:
        """Record a rejected claim."""
        self.claims_total.labels(result=reason).inc()

    def record_root_update(self, success: bool) -> None:
        result = "updated" if success else "unauthorized"
        self.root_updates.labels(result=result).inc()

    def record_withdrawal(self, result: str, amount: int = 0) -> None:
        self.withdrawals.labels(result=result).inc()
        if result == "withdrawn":
            self.withdrawn_amount.inc(amount)

    def record_merkle_build(self, duration: float, tree_size: int) -> None:
        """Record Merkle tree build."""
        self.merkle_build_duration.observe(duration)
        self.merkle_tree_size.observe(tree_size)

    def record_merkle_verification(self, valid: bool) -> None:
        """Record Merkle proof verification."""
        result = "valid" if valid else "invalid"
        self.merkle_verifications.labels(result=result).inc()

    def set_custody_balance(self, balance: int) -> None:
        self.custody_balance.set(balance)

    def set_service_info(self, version: str, environment: str, root: str | None) -> None:
        """Set service info labels."""
        self.service_info.info({
            "version": version,
            "environment": environment,
            "root": root or "",
        })


# Singleton instance
_claim_metrics: ClaimMetrics | None = None


def get_claim_metrics() -> ClaimMetrics:
    """Get global claim metrics instance."""
    global _claim_metrics
    if _claim_metrics is None:
        _claim_metrics = ClaimMetrics()
    return _claim_metrics

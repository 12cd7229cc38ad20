"""
Merkle Airdrop Claim Service - Claim Registry

State machine guaranteeing at most one redemption per identity:
- claim: verify the caller's entitlement against the current root, mark it
  claimed, then pay out through the ledger
- update_root: owner-only root rotation
- withdraw: owner-only recovery of custody funds

Each operation either completes or leaves the registry exactly as it was.
The registry does no locking of its own; the host linearises calls.

Policies:
- The identity proven and paid is always the caller. A proof for another
  identity never verifies for a different caller.
- Claim records survive root rotation. An identity that claimed under any
  root stays claimed, so reusing an amount in a later root cannot pay twice.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from eth_utils import encode_hex

from merkle_airdrop.crypto.leaf import normalize_identity, validate_amount
from merkle_airdrop.crypto.merkle import parse_digest, verify_proof
from merkle_airdrop.metrics import get_claim_metrics
from merkle_airdrop.services.ledger import Ledger, TransferResult

logger = structlog.get_logger(__name__)

# 32 levels covers 2**32 entitlements
DEFAULT_MAX_PROOF_LENGTH = 32


class ClaimStatus(str, Enum):
    """Per-identity claim lifecycle."""

    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"


@dataclass
class ClaimRecord:
    """Claim state for one identity."""

    identity: str
    status: ClaimStatus = ClaimStatus.UNCLAIMED
    amount: int | None = None
    root: str | None = None
    claimed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "status": self.status.value,
            "amount": str(self.amount) if self.amount is not None else None,
            "root": self.root,
            "claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
        }


@dataclass(frozen=True)
class ClaimReceipt:
    """Returned by a successful claim."""

    identity: str
    amount: int
    root: str


class ClaimRegistryError(Exception):
    """Base exception for claim registry errors."""

    code = "registry_error"


class AlreadyClaimedError(ClaimRegistryError):
    """The identity has already redeemed its entitlement."""

    code = "already_claimed"


class InvalidProofError(ClaimRegistryError):
    """The proof does not establish the claimed entitlement."""

    code = "invalid_proof"


class UnauthorizedError(ClaimRegistryError):
    """A privileged operation was called by someone other than the owner."""

    code = "unauthorized"


class InsufficientFundsError(ClaimRegistryError):
    """The ledger refused a transfer. The message is the ledger's reason."""

    code = "insufficient_funds"


@dataclass
class RootChange:
    """Entry in the root rotation history."""

    previous: str
    current: str
    max_proof_length: int
    changed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ClaimRegistry:
    """
    Claim state for one airdrop campaign.

    Owns the current root, the owner identity, the ledger capability bound
    to custody, and the claim records. Nothing else writes them.
    """

    def __init__(
        self,
        ledger: Ledger,
        initial_root: str | bytes,
        owner: str,
        max_proof_length: int = DEFAULT_MAX_PROOF_LENGTH,
        proof_length_ceiling: int = DEFAULT_MAX_PROOF_LENGTH,
    ) -> None:
        """
        Initialize the registry.

        Args:
            ledger: Ledger capability spending from the custody account
            initial_root: Merkle root published for the campaign
            owner: Identity allowed to rotate the root and withdraw
            max_proof_length: Longest proof accepted by claim(), usually the
                depth of the tree behind initial_root
            proof_length_ceiling: Upper limit for any proof bound, and the
                bound restored when a root is rotated without one

        Raises:
            ValueError: If the root, owner or proof bound is invalid
        """
        if proof_length_ceiling < 0:
            raise ValueError("proof_length_ceiling must be non-negative")
        self._proof_length_ceiling = proof_length_ceiling
        self._check_proof_bound(max_proof_length)

        self._ledger = ledger
        self._root = parse_digest(initial_root)
        self._owner = normalize_identity(owner)
        self._max_proof_length = max_proof_length
        self._claims: dict[str, ClaimRecord] = {}
        self._root_history: list[RootChange] = []
        self._metrics = get_claim_metrics()

        logger.info(
            "Claim registry created",
            root=self.current_root,
            owner=self._owner,
            max_proof_length=max_proof_length,
        )

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def current_root(self) -> str:
        """Active Merkle root as 0x hex."""
        return encode_hex(self._root)

    @property
    def max_proof_length(self) -> int:
        return self._max_proof_length

    @property
    def proof_length_ceiling(self) -> int:
        return self._proof_length_ceiling

    @property
    def root_history(self) -> list[RootChange]:
        return list(self._root_history)

    @property
    def total_claimed(self) -> int:
        """Sum of all amounts paid out by claims."""
        return sum(
            record.amount or 0
            for record in self._claims.values()
            if record.status == ClaimStatus.CLAIMED
        )

    def is_claimed(self, identity: str) -> bool:
        """
        Check whether an identity has redeemed its entitlement.

        Raises:
            ValueError: If identity is not a valid address
        """
        record = self._claims.get(normalize_identity(identity))
        return record is not None and record.status == ClaimStatus.CLAIMED

    def get_claim(self, identity: str) -> ClaimRecord | None:
        return self._claims.get(normalize_identity(identity))

    def custody_balance(self) -> int:
        holder = getattr(self._ledger, "holder", None)
        if holder is None:
            raise AttributeError("Ledger does not expose its custody holder")
        return self._ledger.balance_of(holder)

    def claim(self, amount: int, proof: list[str], caller: str) -> ClaimReceipt:
        """
        Redeem the caller's entitlement.

        Args:
            amount: Entitled amount, exactly as committed in the tree
            proof: Sibling hashes from the caller's leaf to the root
            caller: Identity submitting the claim; also the payout target

        Returns:
            ClaimReceipt for the payout

        Raises:
            AlreadyClaimedError: If the caller has already claimed
            InvalidProofError: If the proof does not verify for
                (caller, amount) under the current root
            InsufficientFundsError: If the ledger refuses the payout; the
                claim mark is rolled back
        """
        try:
            identity = normalize_identity(caller)
        except ValueError as e:
            self._metrics.record_claim_rejected(InvalidProofError.code)
            raise InvalidProofError(f"Invalid caller identity: {e}") from e

        existing = self._claims.get(identity)
        if existing is not None and existing.status == ClaimStatus.CLAIMED:
            logger.warning("Claim rejected, already claimed", identity=identity)
            self._metrics.record_claim_rejected(AlreadyClaimedError.code)
            raise AlreadyClaimedError("Airdrop already claimed")

        if len(proof) > self._max_proof_length:
            logger.warning(
                "Claim rejected, proof too long",
                identity=identity,
                proof_length=len(proof),
                max_proof_length=self._max_proof_length,
            )
            self._metrics.record_claim_rejected(InvalidProofError.code)
            raise InvalidProofError("Invalid proof")

        root = self._root
        valid = verify_proof(root, identity, amount, proof, max_length=self._max_proof_length)
        self._metrics.record_merkle_verification(valid)
        if not valid:
            logger.warning("Claim rejected, invalid proof", identity=identity, amount=amount)
            self._metrics.record_claim_rejected(InvalidProofError.code)
            raise InvalidProofError("Invalid proof")

        # Mark before paying out: a re-entrant claim from inside the
        # ledger call must see CLAIMED.
        record = ClaimRecord(
            identity=identity,
            status=ClaimStatus.CLAIMED,
            amount=validate_amount(amount),
            root=encode_hex(root),
            claimed_at=datetime.now(timezone.utc),
        )
        self._claims[identity] = record

        try:
            result = self._ledger.transfer(identity, amount)
        except Exception:
            self._rollback_claim(identity, existing)
            logger.error("Ledger raised during claim payout", identity=identity, amount=amount)
            raise

        if not result.ok:
            self._rollback_claim(identity, existing)
            logger.warning(
                "Claim payout failed",
                identity=identity,
                amount=amount,
                reason=result.reason,
            )
            self._metrics.record_claim_rejected(InsufficientFundsError.code)
            raise InsufficientFundsError(result.reason or "transfer failed")

        logger.info("Airdrop claimed", identity=identity, amount=amount, root=record.root)
        self._metrics.record_claim(amount)
        self._update_custody_gauge()
        return ClaimReceipt(identity=identity, amount=amount, root=record.root)

    def _rollback_claim(self, identity: str, previous: ClaimRecord | None) -> None:
        if previous is None:
            self._claims.pop(identity, None)
        else:
            self._claims[identity] = previous

    def update_root(
        self,
        new_root: str | bytes,
        caller: str,
        max_proof_length: int | None = None,
    ) -> str:
        """
        Replace the active root.

        Claim records are kept as they are. The proof bound moves with the
        root: pass the new tree's depth, or leave it out to fall back to
        the proof length ceiling.

        Returns:
            The new root as 0x hex

        Raises:
            UnauthorizedError: If caller is not the owner
            ValueError: If new_root is not a 32-byte digest or the bound is
                negative or above the ceiling
        """
        if not self._is_owner(caller):
            self._metrics.record_root_update(False)
            raise self._unauthorized("update_root", caller)

        root = parse_digest(new_root)
        bound = self._proof_length_ceiling if max_proof_length is None else max_proof_length
        self._check_proof_bound(bound)

        change = RootChange(
            previous=self.current_root,
            current=encode_hex(root),
            max_proof_length=bound,
        )
        self._root = root
        self._max_proof_length = bound
        self._root_history.append(change)
        self._metrics.record_root_update(True)

        logger.info(
            "Merkle root updated",
            previous=change.previous,
            current=change.current,
            max_proof_length=bound,
        )
        return change.current

    def withdraw(self, amount: int, caller: str) -> TransferResult:
        """
        Transfer custody funds to the owner.

        Raises:
            UnauthorizedError: If caller is not the owner
            InsufficientFundsError: If the ledger refuses the transfer
        """
        if not self._is_owner(caller):
            self._metrics.record_withdrawal(UnauthorizedError.code)
            raise self._unauthorized("withdraw", caller)

        result = self._ledger.transfer(self._owner, amount)
        if not result.ok:
            logger.warning("Withdrawal failed", amount=amount, reason=result.reason)
            self._metrics.record_withdrawal(InsufficientFundsError.code)
            raise InsufficientFundsError(result.reason or "transfer failed")

        logger.info("Custody withdrawn", owner=self._owner, amount=amount)
        self._metrics.record_withdrawal("withdrawn", amount)
        self._update_custody_gauge()
        return result

    def _is_owner(self, caller: str) -> bool:
        try:
            return normalize_identity(caller) == self._owner
        except ValueError:
            return False

    @staticmethod
    def _unauthorized(operation: str, caller: str) -> UnauthorizedError:
        logger.warning("Unauthorized operation", operation=operation, caller=caller)
        return UnauthorizedError("Caller is not the owner")

    def _check_proof_bound(self, bound: int) -> None:
        if bound < 0:
            raise ValueError("max_proof_length must be non-negative")
        if bound > self._proof_length_ceiling:
            raise ValueError(
                f"max_proof_length {bound} exceeds ceiling {self._proof_length_ceiling}"
            )

    def _update_custody_gauge(self) -> None:
        holder = getattr(self._ledger, "holder", None)
        if holder is not None:
            self._metrics.set_custody_balance(self._ledger.balance_of(holder))

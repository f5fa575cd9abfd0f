"""
FogMine error hierarchy

Every failure aborts the whole call with no partial effect.
Callers fix the request and resubmit; nothing is retried internally.
"""


class GameError(Exception):
    """Base class for all rejected game operations."""


class ConfigError(GameError):
    """Configuration cannot drive a game."""


class AccessDeniedError(GameError):
    """Caller lacks the capability for an operator action."""


class GamePausedError(GameError):
    """Mutating operations are suspended."""


# =============================================================================
# Admission
# =============================================================================

class AdmissionError(GameError):
    pass


class GameEndedError(AdmissionError):
    pass


class AlreadyAdmittedError(AdmissionError):
    pass


class BadSignatureError(AdmissionError):
    pass


class NotAdmittedError(AdmissionError):
    pass


# =============================================================================
# Topology
# =============================================================================

class TopologyError(GameError):
    pass


class NeighbourNotMinedError(TopologyError):
    pass


class BlockAlreadyMinedError(TopologyError):
    pass


class BadBlockTypeError(TopologyError):
    pass


# =============================================================================
# Proofs
# =============================================================================

class ProofError(GameError):
    pass


class DefogMismatchError(ProofError):
    pass


class PowMismatchError(ProofError):
    pass


class InvalidProofError(ProofError):
    pass


class FlagsMismatchError(ProofError):
    pass


class MalformedBatchError(ProofError):
    pass


# =============================================================================
# Quotas
# =============================================================================

class QuotaError(GameError):
    pass


class MustUnlockDepthError(QuotaError):
    pass


class MustNotUnlockDepthError(QuotaError):
    pass


class InsufficientEnergyError(QuotaError):
    pass


class InsufficientPoolError(QuotaError):
    pass


class NothingToClaimError(QuotaError):
    pass


class InvalidAmountError(QuotaError):
    pass


# =============================================================================
# Ledger consistency
# =============================================================================

class LedgerConsistencyError(GameError):
    """A ledger invariant does not hold; indicates an accounting bug upstream."""


class ReentrancyError(GameError):
    """A token-releasing operation was entered while another was releasing."""

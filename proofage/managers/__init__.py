"""Manager layer - business logic."""

from proofage.managers.proof import ProofRequestManager

__all__ = ["ProofRequestManager"]

"""Proof request lifecycle manager."""

from proofage.managers.proof.proof import CallbackOutcome, ProofRequestManager

__all__ = ["CallbackOutcome", "ProofRequestManager"]

"""ProofAge - age-over assertion rail."""

__version__ = "0.1.0"

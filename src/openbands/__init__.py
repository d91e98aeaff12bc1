"""openbands: badge-gated anonymous communities."""

__version__ = "0.1.0"

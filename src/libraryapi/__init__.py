"""Book lending with one active loan per book and late-loan notices."""

__version__ = "0.1.0"

"""dbdiag — on-demand diagnostic checks for a primary/replica database cluster."""

__version__ = "0.1.0"

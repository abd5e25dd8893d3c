"""FunRun - simulated token ledger and market engine."""

__version__ = "1.0.0"

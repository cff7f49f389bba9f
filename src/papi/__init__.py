"""papi: branch deploy and sync engine for the task dashboard."""

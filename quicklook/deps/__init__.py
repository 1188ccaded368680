"""FastAPI dependencies: request authentication and ledger wiring."""

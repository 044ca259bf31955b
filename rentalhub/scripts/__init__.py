"""Operational scripts installed as console entry points (rentalhub-seed, rentalhub-setup-db)."""

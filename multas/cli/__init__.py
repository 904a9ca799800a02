"""Command-line diagnostics for MULTAs."""

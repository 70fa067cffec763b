"""Synthetic order generation from aggregate daily sales."""

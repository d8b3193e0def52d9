"""Sender key handling: loading, address derivation, scoped key use."""

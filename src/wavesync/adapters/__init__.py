"""Adapters binding the controller ports to concrete backends."""

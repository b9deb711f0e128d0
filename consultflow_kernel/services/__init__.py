"""Kernel services: stateful operations over the company-scoped stores."""

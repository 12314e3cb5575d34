"""Shared primitives: config, errors, enums, models, clocks and ids."""

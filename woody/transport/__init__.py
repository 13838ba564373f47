"""Transports towards emulator processes that speak PINE."""

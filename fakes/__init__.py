"""Test doubles for running without I2C hardware."""

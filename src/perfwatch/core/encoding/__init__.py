"""Encoders for exported stats, alerts and samples."""

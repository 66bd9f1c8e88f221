"""Scheduled reminder dispatch job."""

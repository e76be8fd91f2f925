"""Test doubles for the remote note service."""

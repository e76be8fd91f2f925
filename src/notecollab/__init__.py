"""
NoteCollab - client-side edit controller for collaborative notes

Drives the remote note service through the edit-lock protocol, the owner-gated
sharing model and the append-only version history.

Author: Cosmo D'Antuono
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Cosmo D'Antuono"
__email__ = "cosmo.dantuono@gmail.com"

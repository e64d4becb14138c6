"""Clients for the control plane and the part byte transport."""

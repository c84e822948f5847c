"""Behaviour shared by every metadata repository and blob storage implementation."""

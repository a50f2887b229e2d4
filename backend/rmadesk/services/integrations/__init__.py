"""Clients for the external systems the service desk pushes to or reads from."""

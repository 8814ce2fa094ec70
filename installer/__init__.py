"""
Dev stack bootstrapper.

This package provisions the host-side dependencies of the local development
stack (Docker, the Redis and PostgreSQL clients) and the credential for the
Prometheus reverse proxy.
"""

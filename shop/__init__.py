"""
Shop administration package.

Catalog management and order workflow use cases, with the repository
protocols they depend on and the backends, HTTP API and CLI around them.
"""

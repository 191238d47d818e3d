"""API package: routes, dependencies and downstream clients."""

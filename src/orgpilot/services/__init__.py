"""Platform and generator clients."""

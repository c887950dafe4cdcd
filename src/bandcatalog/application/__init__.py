"""Application layer: the catalog and list consistency services."""

"""Storage package: upload policy, limits and the direct-to-storage client."""

"""Building blocks shared by the registry and the executor."""

"""Record layout resolution and assembly."""

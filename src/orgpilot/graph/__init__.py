"""Graph building, layered layout and process diagrams."""

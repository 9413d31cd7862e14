"""Read-only HTTP view over deployment journals."""

"""Release stages: branch sync, build decision, versioning, finalization."""

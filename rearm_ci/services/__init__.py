"""Application services: release stages and CLI installation."""

"""Download and unpack helpers used by the CLI installer."""

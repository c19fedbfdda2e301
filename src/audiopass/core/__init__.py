"""Planning and commit engine for audiopass."""

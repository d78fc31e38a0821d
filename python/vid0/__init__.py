"""vid0: AI chat backend for YouTube creators."""

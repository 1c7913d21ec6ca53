"""Background job entrypoints executed by RQ workers."""

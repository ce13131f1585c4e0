"""Course progress and sequential unlocking."""

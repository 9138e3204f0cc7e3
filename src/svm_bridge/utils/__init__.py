"""Runtime config and audit logging helpers for svm_bridge tools."""

"""Order lifecycle: vocabulary, state machine, ledger, assignment and service."""

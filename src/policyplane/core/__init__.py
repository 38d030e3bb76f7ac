"""policyplane core: compiler, retriever, gates, ledger, optimizer."""

"""Core engine: state, configuration, errors and DeFi components."""

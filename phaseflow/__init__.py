"""phaseflow - phase-based delivery workflow orchestration for MCP agents."""

# No imports at package level; import modules directly where needed

__version__ = "0.1.0"

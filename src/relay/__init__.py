"""Agent Relay - delegate chat queries to specialist agents and merge the replies."""

__version__ = "0.3.0"

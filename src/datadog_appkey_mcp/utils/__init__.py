# ABOUTME: Utilities package initialization for the Datadog Application Key MCP Server
# ABOUTME: Contains shared utilities for client, state, safety, and logging

"""
Datadog Application Key MCP Utilities Package

Shared utilities:
    - client.py: Datadog Key Management API client with retry logic
    - state.py: Attribute schemas, ResourceData, and error translation
    - safety.py: Confirmation patterns and destructive operation guards
    - logging.py: Structured logging with correlation IDs
"""

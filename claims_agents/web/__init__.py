"""HTTP surfaces: agent servers, the tool service and the SSE relay."""

"""HTTP client layer: request options, transport, orchestration, pagination."""

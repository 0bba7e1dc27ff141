"""LLM Generation Dispatcher.

Obtains a text completion from an external LLM provider with:
  - Provider Registry (static, ordered candidates per route profile)
  - Vendor-Specific Adapters (request shape and headers per provider)
  - Response Normalizer (uniform CompletionResult, empty content = failure)
  - Dispatcher (sequential attempts, per-attempt timeout with cancellation)
  - Fallback Responder (canned content after exhaustion)
"""

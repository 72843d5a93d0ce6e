"""
Feature flag service package.

The service answers feature queries for browser and backend clients:
- Evaluation: via the Unleash frontend API
- Caching: in-process TTL cache in front of the evaluator
- Failure policy: evaluator errors resolve to disabled and are not cached

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.adapters: HTTP client for Unleash.
- app.caching: Flag cache.
- app.domain: Evaluation result type and the feature check service.
"""

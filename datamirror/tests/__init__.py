"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Snapshots and list aggregation
    - Store: fetch dispatch, holds, purges, effects, subscriptions
    - Handles: get/update/invalidate/predict_update over one or many keys
    - Namespaces, hydration and the state transfer codec
    - Config, errors and structured logging
"""

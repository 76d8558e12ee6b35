# =============================================================================
# tests/ - Test Suite
# =============================================================================
# - test_models.py: Request schema validation
# - test_home.py, test_social.py, test_notifications.py, test_push.py,
#   test_vendor.py, test_sim_racing.py: Services against the in-memory
#   Supabase from conftest.py
# - test_tasks.py, test_websocket.py: Celery tasks and realtime delivery
# - test_api.py: Routing, auth gates and response shapes
#
# Run tests with: pytest
# =============================================================================

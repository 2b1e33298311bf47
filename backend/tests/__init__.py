"""
GAIME Backend Test Suite

Test structure:
- unit/: Test components in isolation with mocks
- integration/: Test component interactions
- e2e/: Real LLM tests (marked @pytest.mark.slow)
- fixtures/: Shared test world data
- mocks/: Mock implementations for testing
"""

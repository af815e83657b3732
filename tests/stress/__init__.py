"""
Cluster Stress Test Suite

Long-running scenarios against an in-process core/edge cluster:
- ST-001: Backup / Store-Copy Interaction (churn + online backups + writes)

Run with: pytest tests/stress/ -v --tb=short
Skip with: pytest -m "not slow"
"""

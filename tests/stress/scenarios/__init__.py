"""
Stress Test Scenarios

- st001: online backups racing member restarts and store copies
"""

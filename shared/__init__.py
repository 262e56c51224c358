"""
Shared Kernel

Base classes, value objects and infrastructure helpers used by both the
booking and the payment contexts.
"""

"""
Permission management feature module.

Hierarchical permissions, role-permission assignment, effective permission
resolution, per-request authorization contexts and policy checks.
"""

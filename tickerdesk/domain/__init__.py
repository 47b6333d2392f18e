"""
Domain layer package.

Contains pure business logic: entities, indicator math, trade rules
and port interfaces. No framework or IO imports.
"""

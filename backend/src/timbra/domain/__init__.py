"""
Domain package - Core fiscal logic with no external dependencies.

This package contains pure Python value objects, SAT catalogs and the
validation rules that decide whether a CFDI can be stamped.
"""

"""Binding engine — from route templates and raw strings to message instances.

Shape resolution, parameter extraction, conversion, projection synthesis
and the dispatcher that ties them together per endpoint.
"""

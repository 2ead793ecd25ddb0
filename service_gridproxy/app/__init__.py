"""
Grid Proxy service application package.
"""

"""Child process support: launching, output draining, command formatting.

Submodules are imported directly (`shellscope.process.launcher`, ...).
"""

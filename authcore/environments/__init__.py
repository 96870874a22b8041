"""
Environments - integrations with external calendar providers.

Each provider lives in its own subpackage and implements the contracts
from environments/base.py.
"""

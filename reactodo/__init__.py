# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Reactodo - turn Slack emoji reactions into to-do items.

The package wires a Slack Events API webhook to a task store. A reaction
added by the webhook owner is mapped to an urgency bucket and becomes
at most one task, titled by an LLM when one is configured.
"""

__version__ = "0.1.0"

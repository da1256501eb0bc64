"""Therapy Worksheet Backend.

Generates therapy worksheets with AI, assigns them to caregivers, shares
them with the professional community and tracks outcomes per child.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"

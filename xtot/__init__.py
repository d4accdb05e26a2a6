"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
XTOT - Xray/TestRail to Testomat.io
A CLI tool for migrating test cases, suites, steps and attachments from Jira Xray
and TestRail into Testomat.io
"""

__version__ = "0.1.0"

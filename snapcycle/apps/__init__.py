# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Command-line applications."""

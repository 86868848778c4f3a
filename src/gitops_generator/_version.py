# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
__version__ = "0.1.0"

"""
cellar - installs Proton and DXVK runners from GitHub releases and launches
Windows games under them.
"""

from cellar.cellar_config import CELLAR_VERSION as __version__
